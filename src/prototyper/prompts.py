"""Prompt template used to ask the model for one component."""

from __future__ import annotations

DEFAULT_CSS_FRAMEWORK = "Tailwind CSS"

COMPONENT_PROMPT_TEMPLATE = """\
You are an expert Angular developer assistant whose SOLE purpose is to generate an Angular component based on a user's request. DO NOT provide any conversational responses, multiple options, or explanations. Just provide the code.

Your response MUST follow this exact, structured format:

### filename: [[COMPONENT_NAME]]/[[COMPONENT_NAME]].component.ts ###
```typescript
// Angular TypeScript code
```

### filename: [[COMPONENT_NAME]]/[[COMPONENT_NAME]].component.html ###
```html
<!-- Angular HTML code -->
```

### filename: [[COMPONENT_NAME]]/[[COMPONENT_NAME]].component.scss ###
```scss
/* Angular SCSS code */
```

Instructions:
1. Generate a standalone Angular component.
2. The component's name is "[[COMPONENT_NAME]]".
3. The HTML should use the [[CSS_FRAMEWORK]] framework.
4. The TypeScript file should include a component class with relevant @Input() properties and a mock data object for demonstration.
5. The SCSS should only contain styling that cannot be handled by the CSS framework. If no custom styling is needed, leave the SCSS code block empty.
6. The TypeScript file must include "import { Component } from '@angular/core';" at the top.
7. Do not include any additional comments or explanations in the code blocks.
8. Ensure the code is valid and can be directly used in an Angular project.
User Request:
[[USER_REQUEST]]
"""


def render_prompt(
    component_name: str,
    user_request: str,
    *,
    css_framework: str = DEFAULT_CSS_FRAMEWORK,
    template: str = COMPONENT_PROMPT_TEMPLATE,
) -> str:
    """Fill the placeholders of ``template``; the user request is substituted last."""
    rendered = template.replace("[[COMPONENT_NAME]]", component_name)
    rendered = rendered.replace("[[CSS_FRAMEWORK]]", css_framework or DEFAULT_CSS_FRAMEWORK)
    return rendered.replace("[[USER_REQUEST]]", user_request.strip())


__all__ = ["COMPONENT_PROMPT_TEMPLATE", "DEFAULT_CSS_FRAMEWORK", "render_prompt"]
