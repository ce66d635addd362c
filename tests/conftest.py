from __future__ import annotations

import json
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


APP_MODULE_SOURCE = textwrap.dedent(
    """
    import { NgModule } from '@angular/core';
    import { BrowserModule } from '@angular/platform-browser';

    import { AppComponent } from './app.component';

    @NgModule({
      declarations: [
        AppComponent
      ],
      imports: [
        BrowserModule
      ],
      providers: [],
      bootstrap: [AppComponent]
    })
    export class AppModule { }
    """
).lstrip()

WIDGET_RESPONSE = textwrap.dedent(
    """
    Here is your component.

    ### filename: widget/widget.component.ts ###
    ```typescript
    import { Component } from '@angular/core';

    @Component({
      selector: 'app-widget',
      templateUrl: './widget.component.html',
    })
    export class WidgetComponent {}
    ```

    ### filename: widget/widget.component.html ###
    ```html
    <div class="widget"></div>
    ```

    ### filename: widget/widget.component.scss ###
    ```scss
    ```
    """
).lstrip()


@dataclass(slots=True)
class AngularWorkspace:
    """Fixture payload representing a minimal workspace on disk."""

    root: Path
    source_root: str = "src"

    @property
    def app_dir(self) -> Path:
        return self.root / self.source_root / "app"

    @property
    def module_path(self) -> Path:
        return self.app_dir / "app.module.ts"

    def snapshot(self) -> dict[str, bytes]:
        """Return every file under the root keyed by relative posix path."""
        return {
            path.relative_to(self.root).as_posix(): path.read_bytes()
            for path in sorted(self.root.rglob("*"))
            if path.is_file()
        }


def write_manifest(root: Path, source_root: str | None = "src", project: str = "demo") -> None:
    entry: dict[str, str] = {}
    if source_root is not None:
        entry["sourceRoot"] = source_root
    manifest = {"version": 1, "defaultProject": project, "projects": {project: entry}}
    (root / "angular.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")


@pytest.fixture()
def angular_workspace(tmp_path: Path) -> AngularWorkspace:
    """Create a module-based workspace with an app.module.ts host and root template."""
    root = tmp_path / "workspace"
    root.mkdir()
    write_manifest(root)
    workspace = AngularWorkspace(root=root)
    workspace.app_dir.mkdir(parents=True)
    workspace.module_path.write_text(APP_MODULE_SOURCE, encoding="utf-8")
    (workspace.app_dir / "app.component.html").write_text("<h1>Demo</h1>\n", encoding="utf-8")
    return workspace
