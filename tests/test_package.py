from __future__ import annotations

import pytest


def test_entry_package_exports_application() -> None:
    import app as app_package
    import tmdbaddon

    assert tmdbaddon.app is app_package.app
    assert tmdbaddon.AddonService is app_package.AddonService
    paths = {route.path for route in tmdbaddon.app.routes}
    assert {
        "/healthz",
        "/meta/{content_type}/{meta_id}.json",
        "/catalog/{content_type}/{catalog_id}.json",
        "/catalog/{content_type}/{catalog_id}/{extra}.json",
        "/catalog/series/calendar-videos/{meta_ids}.json",
    } <= paths


def test_unknown_lazy_export() -> None:
    import app as app_package

    with pytest.raises(AttributeError):
        app_package.does_not_exist  # noqa: B018
