"""Tests for schema migrations and page loading."""

import copy
import json

import pytest

from page_editor.models import CURRENT_SCHEMA_VERSION, Language
from page_editor.services import migrations
from page_editor.services.migrations import (
    MigrationError,
    PageCorruptedError,
    dump_page,
    load_page,
    load_page_json,
    migrate,
)
from tests.helpers.factories import make_frame, make_grouped_page, make_node, make_node_data, make_page


def v1_document():
    return {
        "schemaVersion": 1,
        "name": "Legacy",
        "components": [
            {
                "id": "a",
                "type": "text",
                "layout": {"x": 1, "y": 2, "width": 10, "height": 10},
                "styles": {"color": "red"},
            },
        ],
    }


def v2_document(*components, **overrides):
    data = {"schemaVersion": 2, "name": "Two", "components": list(components)}
    data.update(overrides)
    return data


class TestMigrate:
    """Version-keyed steps applied in sequence."""

    def test_v1_layout_and_styles_are_wrapped(self):
        page = load_page(v1_document())
        node = page.get_component("a")
        assert node.layout.default.x == 1
        assert node.styles.default == {"color": "red"}
        assert page.schema_version == CURRENT_SCHEMA_VERSION
        assert page.groups == {}

    def test_missing_version_is_treated_as_v1(self):
        data = v1_document()
        del data["schemaVersion"]
        assert migrate(data)["schemaVersion"] == CURRENT_SCHEMA_VERSION

    def test_input_is_not_modified(self):
        data = v1_document()
        original = copy.deepcopy(data)
        migrate(data)
        assert data == original

    def test_current_version_passes_through(self):
        data = make_grouped_page().to_dict()
        assert migrate(data) == data

    def test_language_alias_is_normalized(self):
        data = v2_document(
            make_node_data("a", language="اردو"),
            settings={"language": "اردو", "direction": "rtl"},
        )
        page = load_page(data)
        assert page.settings.language == Language.URDU
        assert page.get_component("a").language == Language.URDU

    def test_group_of_one_is_dissolved(self):
        page = load_page(v2_document(make_node_data("a", groupId="lonely"), make_node_data("b")))
        assert page.get_component("a").group_id is None
        assert page.groups == {}

    def test_current_version_group_of_one_is_dissolved(self):
        data = make_grouped_page().to_dict()
        data["components"] = [c for c in data["components"] if c["id"] != "b"]

        page = load_page(data)
        a = page.get_component("a")
        assert a.group_id is None
        assert page.groups == {}
        assert (a.layout.default.x, a.layout.default.y) == (100, 50)

    def test_group_of_one_at_tablet_restores_tablet_position(self):
        data = make_page(
            make_node("a", x=5, y=5, tablet={"x": 10}, groupId="g1"),
            make_node("b", groupId="g1"),
            groups={"g1": make_frame(x=20, y=30, breakpoint="tablet")},
        ).to_dict()
        data["components"] = data["components"][:1]

        a = load_page(data).get_component("a")
        assert a.layout.tablet == {"x": 30, "y": 35}
        assert (a.layout.default.x, a.layout.default.y) == (5, 5)

    def test_v2_group_gets_a_frame(self):
        page = load_page(v2_document(
            make_node_data("a", x=10, y=20, width=100, height=50, groupId="g"),
            make_node_data("b", x=200, y=40, width=50, height=50, groupId="g"),
        ))
        frame = page.groups["g"]
        assert (frame.x, frame.y, frame.width, frame.height) == (10, 20, 240, 70)
        assert (page.get_component("a").layout.default.x, page.get_component("a").layout.default.y) == (0, 0)
        assert page.get_component("b").layout.default.x == 190


class TestMigrationFailures:
    """Gaps and future versions fail hard."""

    def test_future_version(self):
        with pytest.raises(MigrationError):
            migrate({"schemaVersion": CURRENT_SCHEMA_VERSION + 1})

    @pytest.mark.parametrize("version", ["3", 0, True])
    def test_invalid_version(self, version):
        with pytest.raises(MigrationError):
            migrate({"schemaVersion": version})

    def test_missing_step(self, monkeypatch):
        monkeypatch.delitem(migrations.MIGRATIONS, 2)
        with pytest.raises(MigrationError):
            migrate(v1_document())


class TestLoadAndDump:
    """JSON round trip through the loader."""

    def test_round_trip(self):
        page = make_grouped_page()
        assert load_page_json(dump_page(page)).to_dict() == page.to_dict()

    def test_dump_uses_camel_case(self):
        data = json.loads(dump_page(make_grouped_page()))
        assert data["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert data["components"][0]["groupId"] == "g1"
        assert "zIndex" in data["components"][0]["layout"]["default"]

    def test_invalid_json(self):
        with pytest.raises(PageCorruptedError):
            load_page_json("{not json")
        with pytest.raises(PageCorruptedError):
            load_page_json("[]")

    def test_invalid_document(self):
        data = v2_document(make_node_data("a"), make_node_data("a"))
        with pytest.raises(PageCorruptedError):
            load_page(data)
