from __future__ import annotations

import textwrap

import pytest

from prototyper.structured import ArtifactKind
from prototyper.tools.response_parser import (
    ParseEmptyError,
    iter_artifacts,
    marker_path,
    normalise_artifact_path,
    parse_response,
    resolve_language_tag,
)


def _dedent(text: str) -> str:
    return textwrap.dedent(text).lstrip()


def test_each_well_formed_block_yields_one_artifact() -> None:
    names = ["alpha", "beta-panel", "GammaView", "nested/dir/delta.component"]
    response = "\n\n".join(
        f"### filename: {name} ###\n```typescript\nexport class X{index} {{}}\n```"
        for index, name in enumerate(names)
    )

    artifacts = parse_response(response)

    assert [artifact.id for artifact in artifacts] == ["alpha", "beta-panel", "gamma-view", "delta"]
    assert [artifact.source_path for artifact in artifacts] == names
    assert all(artifact.kinds == (ArtifactKind.SCRIPT,) for artifact in artifacts)


def test_widget_block_populates_two_kinds_under_one_artifact() -> None:
    response = _dedent(
        """
        ### filename: widget/widget.component ###
        ```typescript
        class X{}
        ```
        ```html
        <div></div>
        ```
        """
    )

    (artifact,) = parse_response(response)

    assert artifact.id == "widget"
    assert artifact.source_path == "widget/widget.component"
    assert dict(artifact.contents) == {
        ArtifactKind.SCRIPT: "class X{}",
        ArtifactKind.MARKUP: "<div></div>",
    }
    assert artifact.file_path(ArtifactKind.SCRIPT) == "widget/widget.component.ts"
    assert artifact.file_path(ArtifactKind.MARKUP) == "widget/widget.component.html"


def test_tag_without_newline_and_trailing_whitespace_are_tolerated() -> None:
    response = "### filename: card.component.html ###\n```html<section>\n  <p>hi</p>   \n</section>   \n```\n"

    (artifact,) = parse_response(response)

    assert artifact.contents[ArtifactKind.MARKUP] == "<section>\n  <p>hi</p>   \n</section>"


def test_empty_fenced_body_is_kept_as_empty_string() -> None:
    response = _dedent(
        """
        ### filename: card.component.scss ###
        ```scss
        ```
        """
    )

    (artifact,) = parse_response(response)

    assert dict(artifact.contents) == {ArtifactKind.STYLE: ""}


def test_css_and_scss_are_style_synonyms() -> None:
    response = _dedent(
        """
        ### filename: a.component ###
        ```css
        .a { color: red; }
        ```
        ### filename: b.component ###
        ```scss
        .b { color: blue; }
        ```
        """
    )

    kinds = [artifact.kinds for artifact in parse_response(response)]

    assert kinds == [(ArtifactKind.STYLE,), (ArtifactKind.STYLE,)]


def test_block_without_recognised_fence_is_dropped() -> None:
    response = _dedent(
        """
        ### filename: notes.md ###
        Just prose, no code here.
        ```bash
        npm install
        ```
        ### filename: kept.component.ts ###
        ```ts
        export class KeptComponent {}
        ```
        """
    )

    artifacts = parse_response(response)

    assert [artifact.id for artifact in artifacts] == ["kept"]


def test_response_without_any_recognised_fence_is_parse_empty() -> None:
    response = "### filename: a.ts ###\nno fences at all\n\nSome chatter."

    assert list(iter_artifacts(response)) == []
    with pytest.raises(ParseEmptyError):
        parse_response(response)


def test_empty_response_is_parse_empty() -> None:
    with pytest.raises(ParseEmptyError):
        parse_response("")


def test_unterminated_final_fence_keeps_content() -> None:
    response = "### filename: cut.component.ts ###\n```typescript\nexport class CutComponent {\n  value = 1;\n"

    (artifact,) = parse_response(response)

    assert artifact.script == "export class CutComponent {\n  value = 1;"


def test_marker_inside_open_fence_starts_next_block() -> None:
    response = _dedent(
        """
        ### filename: first.component.ts ###
        ```typescript
        export class FirstComponent {}
        ### filename: second.component.html ###
        ```html
        <p>second</p>
        ```
        """
    )

    first, second = parse_response(response)

    assert first.script == "export class FirstComponent {}"
    assert dict(second.contents) == {ArtifactKind.MARKUP: "<p>second</p>"}


def test_untagged_fence_takes_kind_from_path_extension() -> None:
    response = "### filename: view.component.html ###\n```\n<main></main>\n```\n"

    (artifact,) = parse_response(response)

    assert dict(artifact.contents) == {ArtifactKind.MARKUP: "<main></main>"}


def test_repeated_path_merges_with_later_content_winning() -> None:
    response = _dedent(
        """
        ### filename: dup.component ###
        ```typescript
        export class Old {}
        ```
        ### filename: dup.component ###
        ```typescript
        export class New {}
        ```
        ```html
        <p></p>
        ```
        """
    )

    (artifact,) = parse_response(response)

    assert artifact.script == "export class New {}"
    assert artifact.kinds == (ArtifactKind.SCRIPT, ArtifactKind.MARKUP)


def test_first_line_indentation_is_preserved() -> None:
    response = "### filename: a.component.html ###\n```html\n\n\n    <b>x</b>\n```"

    (artifact,) = parse_response(response)

    assert artifact.contents[ArtifactKind.MARKUP] == "    <b>x</b>"


def test_marker_path_handles_case_and_decoration() -> None:
    assert marker_path("### Filename: `src/app/x.component.ts` ###") == "src/app/x.component.ts"
    assert marker_path("###filename: y.html") == "y.html"
    assert marker_path("## filename: z.ts ##") is None
    assert marker_path("const x = 1;") is None


def test_normalise_artifact_path_rejects_escapes() -> None:
    assert normalise_artifact_path("./a/./b.ts") == "a/b.ts"
    assert normalise_artifact_path("/abs/c.ts") == "abs/c.ts"
    assert normalise_artifact_path("..\\outside.ts") is None
    assert normalise_artifact_path("   ") is None


def test_resolve_language_tag_prefers_longest_glued_prefix() -> None:
    assert resolve_language_tag("typescript") == (ArtifactKind.SCRIPT, "typescript", "")
    assert resolve_language_tag("html<div>")[0] is ArtifactKind.MARKUP
    assert resolve_language_tag("html<div>")[2] == "<div>"
    assert resolve_language_tag("json")[0] is None
    assert resolve_language_tag("") == (None, "", "")
