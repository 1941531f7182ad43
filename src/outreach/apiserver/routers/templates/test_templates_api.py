import pytest

GREETING = {
    "name": "Venue greeting",
    "content": "Hi {venue_name}, we are playing {city} on {date}.",
    "variables": [
        {"name": "venue_name", "required": True},
        {"name": "city", "type": "text", "default_value": "Lisbon"},
        {"name": "date", "type": "date"},
    ],
}


def create_template(ppost, **kwargs) -> dict:
    response = ppost("/v1/templates", json={**GREETING, **kwargs})
    assert response.status_code == 200, response.content
    return response.json()["template"]


def test_create_template(ppost):
    template = create_template(ppost)
    assert template["id"].startswith("tpl_")
    assert template["name"] == "Venue greeting"
    assert template["is_active"] is True
    assert template["usage"] == 0
    assert template["variables"][0] == {"name": "venue_name", "type": "text", "default_value": "", "required": True}
    assert template["variables"][2]["type"] == "date"


@pytest.mark.parametrize(
    "body",
    [
        {"name": "", "content": "hello"},
        {"name": "greeting", "content": "   "},
        {"content": "hello"},
    ],
)
def test_create_template_requires_name_and_content(ppost, body):
    response = ppost("/v1/templates", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == "name and content are required"


def test_create_template_rejects_unknown_variable_type(ppost):
    response = ppost("/v1/templates", json={**GREETING, "variables": [{"name": "x", "type": "color"}]})
    assert response.status_code == 422


def test_list_templates_is_scoped_to_user(ppost, pget, uget):
    older = create_template(ppost, name="older")
    newer = create_template(ppost, name="newer")

    templates = pget("/v1/templates").json()["templates"]
    assert [t["id"] for t in templates] == [newer["id"], older["id"]]
    assert uget("/v1/templates").json() == {"templates": []}


def test_get_template(ppost, pget, uget):
    template = create_template(ppost)
    fetched = pget(f"/v1/templates/{template['id']}").json()["template"]
    assert (fetched["id"], fetched["content"]) == (template["id"], template["content"])
    assert fetched["variables"] == template["variables"]
    assert uget(f"/v1/templates/{template['id']}").status_code == 404
    assert pget("/v1/templates/tpl_missing").status_code == 404


def test_update_template(ppost, ppatch, pget):
    template = create_template(ppost)

    response = ppatch(
        f"/v1/templates/{template['id']}",
        json={"name": "Follow-up", "is_active": False, "variables": []},
    )
    assert response.status_code == 204

    updated = pget(f"/v1/templates/{template['id']}").json()["template"]
    assert updated["name"] == "Follow-up"
    assert updated["is_active"] is False
    assert updated["variables"] == []
    assert updated["content"] == GREETING["content"]


@pytest.mark.parametrize(
    "body,detail",
    [({"name": " "}, "name must not be empty"), ({"content": ""}, "content must not be empty")],
)
def test_update_template_invalid(ppost, ppatch, body, detail):
    template = create_template(ppost)
    response = ppatch(f"/v1/templates/{template['id']}", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_update_template_of_other_user_is_not_found(ppost, upatch):
    template = create_template(ppost)
    assert upatch(f"/v1/templates/{template['id']}", json={"name": "mine"}).status_code == 404


def test_delete_template(ppost, pdelete, udelete, pget):
    template = create_template(ppost)
    assert udelete(f"/v1/templates/{template['id']}").status_code == 404
    assert pdelete(f"/v1/templates/{template['id']}").status_code == 204
    assert pget(f"/v1/templates/{template['id']}").status_code == 404
