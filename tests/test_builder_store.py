"""Tests for the builder state store."""

import pytest

from models.form import FieldType, FormDocument, create_default_field
from services.builder_store import BuilderStore, PreviewMode
from services.form_templates import TEMPLATES, get_template, template_titles


@pytest.fixture
def store():
    return BuilderStore()


def ids(step):
    return [f.id for f in step]


class TestFieldOperations:
    """Tests for adding, removing, updating and reordering fields."""

    def test_add_field_appends_and_selects(self, store):
        """Test adding a field to the active step."""
        field = store.add_field("text")

        assert ids(store.steps[0]) == [field.id]
        assert store.state.selected_field_id == field.id

    def test_add_field_creates_missing_steps(self, store):
        field = store.add_field("email", step_index=2)

        assert len(store.steps) == 3
        assert store.steps[2] == (field,)

    def test_insert_at_index(self, store):
        a = store.add_field("text")
        b = store.add_field("text")
        c = store.insert_field_at_index("checkbox", 0, 1)

        assert ids(store.steps[0]) == [a.id, c.id, b.id]

    def test_insert_out_of_range_appends(self, store):
        a = store.add_field("text")
        b = store.insert_field_at_index("date", 0, 99)

        assert ids(store.steps[0]) == [a.id, b.id]

    def test_remove_field_clears_selection(self, store):
        field = store.add_field("text")

        assert store.remove_field(field.id) is True
        assert store.steps[0] == ()
        assert store.state.selected_field_id is None

    def test_remove_is_idempotent(self, store):
        field = store.add_field("text")
        store.remove_field(field.id)
        revision = store.state.revision

        assert store.remove_field(field.id) is False
        assert store.state.revision == revision

    def test_update_merges_and_keeps_identity(self, store):
        field = store.add_field("text")
        updated = store.update_field(field.id, {
            "label": "Full name",
            "required": True,
            "help_text": "As on your passport",
            "id": "hijack",
            "type": "email",
        })

        assert updated.id == field.id
        assert updated.type is FieldType.TEXT
        assert updated.label == "Full name"
        assert updated.help_text == "As on your passport"
        assert store.steps[0][0] == updated

    def test_update_unknown_field_is_noop(self, store):
        store.add_field("text")
        before = store.state

        assert store.update_field("missing", {"label": "x"}) is None
        assert store.state == before

    def test_reorder_is_permutation(self, store):
        fields = [store.add_field("text") for _ in range(4)]
        store.reorder_fields(0, 0, 3)

        assert ids(store.steps[0]) == [fields[1].id, fields[2].id, fields[3].id, fields[0].id]
        assert sorted(ids(store.steps[0])) == sorted(f.id for f in fields)

    def test_reorder_bad_index(self, store):
        store.add_field("text")
        with pytest.raises(IndexError):
            store.reorder_fields(0, 5, 0)


class TestStepOperations:
    """Tests for step management."""

    def test_add_step_makes_it_current(self, store):
        index = store.add_step()

        assert index == 1
        assert len(store.steps) == 2
        assert store.state.current_step == 1

    def test_add_then_remove_restores_count(self, store):
        store.add_step()
        assert store.remove_step(1) is True
        assert len(store.steps) == 1

    def test_last_step_is_kept(self, store):
        assert store.remove_step(0) is False
        assert len(store.steps) == 1

    def test_remove_clamps_current_step(self, store):
        store.add_step()
        store.add_step()
        assert store.state.current_step == 2

        store.remove_step(2)
        assert store.state.current_step == 1

    def test_remove_step_drops_selection_inside_it(self, store):
        store.add_step()
        field = store.add_field("text")
        store.remove_step(1)

        assert store.state.selected_field_id is None
        assert store.document.find_field(field.id) is None

    def test_set_current_step_bounds(self, store):
        with pytest.raises(IndexError):
            store.set_current_step(3)


class TestSnapshots:
    """Tests for immutability and change notification."""

    def test_old_snapshot_unchanged(self, store):
        store.add_field("text")
        snapshot = store.document
        store.add_field("email")
        store.set_title("Changed")

        assert len(snapshot.steps[0]) == 1
        assert snapshot.title != "Changed"

    def test_subscribers_see_every_change(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda state: seen.append(state.revision))
        store.add_field("text")
        store.set_preview_mode("mobile")
        unsubscribe()
        store.set_preview(True)

        assert seen == [1, 2]
        assert store.state.preview_mode is PreviewMode.MOBILE
        assert store.state.is_preview is True

    def test_load_template_keeps_ids(self, store):
        store.set_identifiers("form-1", "share-1")
        store.add_step()
        template = FormDocument(title="Contact", steps=((create_default_field("email"),),))
        store.load_template(template)

        assert store.document.title == "Contact"
        assert store.document.id == "form-1"
        assert store.document.share_id == "share-1"
        assert store.state.current_step == 0
        assert store.state.selected_field_id is None


class TestBuiltinTemplates:
    """Tests for the built-in starter forms."""

    def test_catalogue_titles(self):
        assert template_titles() == ("Contact Form", "Registration Form")
        assert [t.title for t in TEMPLATES] == list(template_titles())

    def test_contact_form_shape(self):
        template = get_template("Contact Form")

        assert len(template.steps) == 1
        step = template.steps[0]
        assert [f.label for f in step] == ["Full Name", "Email Address", "Phone Number", "Message"]
        assert [f.type for f in step] == [FieldType.TEXT, FieldType.EMAIL, FieldType.PHONE, FieldType.TEXTAREA]
        assert [f.required for f in step] == [True, True, False, True]

    def test_registration_form_shape(self):
        template = get_template("Registration Form")

        assert len(template.steps) == 2
        assert [f.label for f in template.steps[0]] == ["First Name", "Last Name", "Email"]
        assert all(f.required for f in template.steps[0])
        assert [f.type for f in template.steps[1]] == [FieldType.PHONE, FieldType.DATE, FieldType.DROPDOWN]
        country = template.steps[1][2]
        assert country.label == "Country"
        assert country.options == ("USA", "Canada", "UK", "Other")

    def test_defaults_kept_where_not_overridden(self):
        message = get_template("Contact Form").steps[0][3]
        assert message.placeholder == "Enter textarea..."
        assert message.validations.min_length == ""

    def test_each_copy_has_fresh_ids(self):
        first = get_template("Contact Form")
        second = get_template("Contact Form")

        first_ids = {f.id for step in first.steps for f in step}
        second_ids = {f.id for step in second.steps for f in step}
        assert len(first_ids) == 4
        assert first_ids.isdisjoint(second_ids)

    def test_unknown_title(self):
        with pytest.raises(KeyError):
            get_template("Survey")

    def test_store_loads_by_title(self, store):
        store.set_identifiers("form-1", "share-1")
        loaded = store.load_builtin_template("Registration Form")

        assert store.document.title == "Registration Form"
        assert store.steps == loaded.steps
        assert store.document.share_id == "share-1"
