from __future__ import annotations

import pytest

from prototyper.utils.naming import (
    artifact_id,
    base_name,
    classify,
    dasherize,
    declared_class_name,
    symbol_name,
    usage_tag,
)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("widget/widget.component", "widget"),
        ("a/b/product-card.component.ts", "product-card"),
        ("plain", "plain"),
        ("dir\\nested.file.html", "nested"),
    ],
)
def test_base_name_stops_at_first_dot(path: str, expected: str) -> None:
    assert base_name(path) == expected


def test_dasherize_splits_camel_case_and_symbols() -> None:
    assert dasherize("ProductCard") == "product-card"
    assert dasherize("HTTPClientView") == "http-client-view"
    assert dasherize("__user  profile__") == "user-profile"
    assert dasherize("") == ""


def test_classify_builds_pascal_case() -> None:
    assert classify("product-card") == "ProductCard"
    assert classify("user_profile view") == "UserProfileView"
    assert classify("pCard") == "PCard"


def test_derived_names_for_artifact_path() -> None:
    path = "shop/product-card.component.ts"

    assert artifact_id(path) == "product-card"
    assert symbol_name(path) == "ProductCardComponent"
    assert symbol_name(path, suffix="") == "ProductCard"
    assert usage_tag(path) == "app-product-card"
    assert usage_tag(path, prefix="") == "product-card"


def test_declared_class_name_reads_first_export() -> None:
    script = "import { Component } from '@angular/core';\n\nexport class ProductCardComponent {}\nexport class Other {}"

    assert declared_class_name(script) == "ProductCardComponent"
    assert declared_class_name("class Hidden {}") is None
    assert declared_class_name(None) is None
