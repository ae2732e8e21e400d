from unittest.mock import AsyncMock

import pytest

from gestaoapi.forms import builder
from gestaoapi.forms.errors import NotFound, ValidationError
from gestaoapi.models.user import User, UserRole

ADMIN = User(id=1, name="Alice", email="admin@example.net", role=UserRole.ADMIN)
MANAGER = User(id=2, name="Marcos", email="manager@example.net", role=UserRole.MANAGER)


def valid_draft() -> builder.FormDraft:
    draft = builder.FormDraft(title="Pesquisa de clima", allowed_directorates=["DTI"])
    field = draft.add_field()
    draft.update_field(field["id"], label="Nome")
    return draft


def mock_store(form_id: int = 10) -> AsyncMock:
    store = AsyncMock()
    store.create_form.return_value = {"id": form_id}
    store.save_structure.return_value = {
        "sections": [],
        "fields": [],
        "id_map": {"sections": {}, "fields": {"temp-x": 5}},
    }
    store.load_form.return_value = {"id": form_id, "title": "Pesquisa de clima"}
    return store


def test_add_section_and_field_use_temp_ids():
    draft = builder.FormDraft(title="T")
    section = draft.add_section()
    field = draft.add_field(section["id"])
    assert section["id"].startswith("temp-")
    assert field["id"].startswith("temp-")
    assert section["title"] == "Seção 1"
    assert field["section_id"] == section["id"]
    assert field["label"] == "Novo campo"


def test_delete_section_removes_its_fields():
    draft = builder.FormDraft(title="T")
    section = draft.add_section()
    draft.add_field(section["id"])
    loose = draft.add_field()
    draft.delete_section(section["id"])
    assert draft.sections == []
    assert [f["id"] for f in draft.fields] == [loose["id"]]


def test_duplicate_field_is_deep_copy():
    draft = builder.FormDraft(title="T")
    field = draft.add_field(field_type="CHECKBOXES")
    draft.add_option(field["id"])
    copy = draft.duplicate_field(field["id"])
    assert copy["id"] != field["id"]
    assert copy["label"] == "Novo campo (cópia)"
    assert copy["order"] == 1
    copy["config"]["options"].append({"id": "x", "label": "X", "value": "x"})
    assert len(field["config"]["options"]) == 1


def test_option_lifecycle():
    draft = builder.FormDraft(title="T")
    field = draft.add_field(field_type="MULTIPLE_CHOICE")
    option = draft.add_option(field["id"])
    assert option == {"id": option["id"], "label": "Opção 1", "value": "option_1"}
    draft.update_option(field["id"], option["id"], "Muito Satisfeito")
    assert field["config"]["options"][0]["value"] == "muito_satisfeito"
    draft.delete_option(field["id"], option["id"])
    assert field["config"]["options"] == []


def test_update_unknown_field_raises():
    with pytest.raises(NotFound):
        builder.FormDraft(title="T").update_field("temp-nope", label="x")


def test_changing_type_keeps_config():
    draft = builder.FormDraft(title="T")
    field = draft.add_field(field_type="MULTIPLE_CHOICE")
    draft.add_option(field["id"])
    draft.update_field(field["id"], type="SHORT_TEXT")
    assert field["config"]["options"]


def test_validate_requires_title():
    draft = valid_draft()
    draft.title = "   "
    with pytest.raises(ValidationError, match="título"):
        builder.validate(draft, is_admin=False)


def test_validate_requires_labels():
    draft = valid_draft()
    draft.add_field()["label"] = ""
    with pytest.raises(ValidationError, match="rótulo"):
        builder.validate(draft, is_admin=False)


def test_validate_requires_directorates_for_admin_only():
    draft = valid_draft()
    draft.allowed_directorates = []
    builder.validate(draft, is_admin=False)
    with pytest.raises(ValidationError, match="diretoria"):
        builder.validate(draft, is_admin=True)


def test_validate_choice_field_needs_options_including_aliases():
    draft = valid_draft()
    field = draft.add_field(field_type="RADIO")
    draft.update_field(field["id"], label="Cor")
    with pytest.raises(ValidationError, match='"Cor"'):
        builder.validate(draft, is_admin=False)


@pytest.mark.anyio
async def test_save_with_choice_field_without_options_makes_no_store_call():
    draft = valid_draft()
    field = draft.add_field(field_type="MULTIPLE_CHOICE")
    draft.update_field(field["id"], label="Satisfação")
    store = mock_store()

    with pytest.raises(ValidationError):
        await builder.save(store, draft, ADMIN, "DTI", publish=True)

    assert store.mock_calls == []


@pytest.mark.anyio
async def test_save_creates_published_form_for_admin():
    store = mock_store()
    draft = valid_draft()

    form = await builder.save(store, draft, ADMIN, "DTI", publish=True)

    data = store.create_form.await_args.args[0]
    assert data["status"] == "PUBLISHED"
    assert data["allowed_directorates"] == ["DTI"]
    store.save_structure.assert_awaited_once_with(10, draft.sections, draft.fields)
    assert form["id_map"] == {"sections": {}, "fields": {"temp-x": 5}}


@pytest.mark.anyio
async def test_save_forces_all_visibility_for_non_admin_create():
    store = mock_store()
    draft = valid_draft()
    draft.allowed_directorates = []

    await builder.save(store, draft, MANAGER, "DPE")

    data = store.create_form.await_args.args[0]
    assert data["allowed_directorates"] == ["ALL"]
    assert data["status"] == "DRAFT"
    assert store.create_form.await_args.kwargs["directorate"] == "DPE"


@pytest.mark.anyio
async def test_save_update_keeps_visibility_for_non_admin():
    store = mock_store()

    await builder.save(store, valid_draft(), MANAGER, "DPE", form_id=7)

    store.create_form.assert_not_awaited()
    form_id, updates = store.update_form.await_args.args
    assert form_id == 7
    assert "allowed_directorates" not in updates
    assert "status" not in updates
