"""Tests for the ADT REST client against a mocked backend."""

from __future__ import annotations

import json

from defusedxml import EntitiesForbidden
import httpx
from mcp.types import INTERNAL_ERROR
import pytest
import respx

from adt_mcp.client import AdtClient, AdtError
from adt_mcp.config import AdtConnectionConfig
from adt_mcp.envelope import INTERNAL_ERROR_MESSAGE
from adt_mcp.server import AdtMcpServer

BASE_URL = "https://sap.example.com:44300"

ERROR_XML = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<exc:exception xmlns:exc="http://www.sap.com/abapxml/types/communicationframework">'
    '<namespace id="com.sap.adt"/>'
    '<type id="ExceptionResourceNotFound"/>'
    '<message lang="EN">Resource ZCL_MISSING does not exist</message>'
    '<localizedMessage lang="EN">Resource ZCL_MISSING does not exist.</localizedMessage>'
    "</exc:exception>"
)

SEARCH_XML = (
    '<adtcore:objectReferences xmlns:adtcore="http://www.sap.com/adt/core">'
    '<adtcore:objectReference adtcore:uri="/sap/bc/adt/oo/classes/zcl_a" '
    'adtcore:type="CLAS/OC" adtcore:name="ZCL_A"/>'
    '<adtcore:objectReference adtcore:uri="/sap/bc/adt/oo/classes/zcl_b" '
    'adtcore:type="CLAS/OC" adtcore:name="ZCL_B"/>'
    "</adtcore:objectReferences>"
)

SINGLE_SEARCH_XML = (
    '<adtcore:objectReferences xmlns:adtcore="http://www.sap.com/adt/core">'
    '<adtcore:objectReference adtcore:uri="/sap/bc/adt/programs/programs/zp" '
    'adtcore:type="PROG/P" adtcore:name="ZP"/>'
    "</adtcore:objectReferences>"
)

TABLE_XML = (
    '<dataPreview:tableData xmlns:dataPreview="http://www.sap.com/adt/dataPreview">'
    "<dataPreview:totalRows>2</dataPreview:totalRows>"
    "<dataPreview:columns>"
    '<dataPreview:metadata dataPreview:name="MANDT" dataPreview:type="C"/>'
    "<dataPreview:dataSet><dataPreview:data>000</dataPreview:data>"
    "<dataPreview:data>100</dataPreview:data></dataPreview:dataSet>"
    "</dataPreview:columns>"
    "<dataPreview:columns>"
    '<dataPreview:metadata dataPreview:name="MTEXT" dataPreview:type="C"/>'
    "<dataPreview:dataSet><dataPreview:data>SAP AG</dataPreview:data>"
    "<dataPreview:data>Demo</dataPreview:data></dataPreview:dataSet>"
    "</dataPreview:columns>"
    "</dataPreview:tableData>"
)

GRAPH = "/sap/bc/adt/compatibility/graph"
FREESTYLE = "/sap/bc/adt/datapreview/freestyle"


def _client(**kwargs) -> AdtClient:
    return AdtClient(BASE_URL, "DEVELOPER", "secret", **kwargs)


@pytest.mark.asyncio
@respx.mock
async def test_login_fetches_csrf_token_for_later_posts():
    login = respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    query = respx.post(path="/sap/bc/adt/datapreview/freestyle").mock(
        return_value=httpx.Response(200, content=TABLE_XML)
    )
    client = _client(client="100", language="EN")

    assert await client.login() is True
    assert client.is_logged_in

    login_request = login.calls.last.request
    assert login_request.headers["x-csrf-token"] == "fetch"
    assert login_request.headers["authorization"].startswith("Basic ")
    assert login_request.url.params["sap-client"] == "100"

    await client.run_query("SELECT * FROM t000", row_number=5)

    request = query.calls.last.request
    assert request.headers["x-csrf-token"] == "tok123"
    assert request.headers["X-sap-adt-sessiontype"] == "stateful"
    assert request.url.params["sap-client"] == "100"
    assert request.url.params["sap-language"] == "EN"
    assert request.url.params["rowNumber"] == "5"
    assert request.content == b"SELECT * FROM t000"
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_failed_login_raises():
    respx.get(path=GRAPH).mock(return_value=httpx.Response(401, content=b""))
    client = _client()

    with pytest.raises(AdtError) as exc_info:
        await client.login()

    assert exc_info.value.status_code == 401
    assert exc_info.value.response_message is None
    assert not client.is_logged_in
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_error_body_is_parsed():
    respx.get(path="/sap/bc/adt/oo/classes/zcl_missing").mock(
        return_value=httpx.Response(404, content=ERROR_XML)
    )
    client = _client()

    with pytest.raises(AdtError) as exc_info:
        await client.object_structure("/sap/bc/adt/oo/classes/zcl_missing")

    error = exc_info.value
    assert error.message == "Request failed with status code 404"
    assert error.status_code == 404
    assert error.response_message == "Resource ZCL_MISSING does not exist."
    assert error.exception_type == "ExceptionResourceNotFound"
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_search_object_returns_references():
    route = respx.get(path="/sap/bc/adt/repository/informationsystem/search").mock(
        return_value=httpx.Response(200, content=SEARCH_XML)
    )
    client = _client()

    found = await client.search_object("ZCL_*", max_results=10)

    assert [ref["name"] for ref in found] == ["ZCL_A", "ZCL_B"]
    assert found[0]["uri"] == "/sap/bc/adt/oo/classes/zcl_a"
    params = route.calls.last.request.url.params
    assert params["operation"] == "quickSearch"
    assert params["query"] == "ZCL_*"
    assert params["maxResults"] == "10"
    assert "objectType" not in params
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_single_search_hit_is_still_a_list():
    respx.get(path="/sap/bc/adt/repository/informationsystem/search").mock(
        return_value=httpx.Response(200, content=SINGLE_SEARCH_XML)
    )
    client = _client()

    found = await client.search_object("ZP", object_type="PROG/P")

    assert found == [
        {"uri": "/sap/bc/adt/programs/programs/zp", "type": "PROG/P", "name": "ZP"}
    ]
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_table_contents_are_decoded_into_rows():
    route = respx.post(path="/sap/bc/adt/datapreview/ddic").mock(
        return_value=httpx.Response(200, content=TABLE_XML)
    )
    client = _client()

    table = await client.table_contents("T000", row_number=2)

    assert table["totalRows"] == 2
    assert [c["name"] for c in table["columns"]] == ["MANDT", "MTEXT"]
    assert table["values"] == [
        {"MANDT": "000", "MTEXT": "SAP AG"},
        {"MANDT": "100", "MTEXT": "Demo"},
    ]
    assert route.calls.last.request.url.params["ddicEntityName"] == "T000"
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_source_is_returned_as_text():
    route = respx.get(path="/sap/bc/adt/programs/programs/zp/source/main").mock(
        return_value=httpx.Response(200, text="REPORT zp.\nWRITE 'hi'.")
    )
    client = _client()

    source = await client.get_object_source(
        "/sap/bc/adt/programs/programs/zp/source/main", version="inactive"
    )

    assert source == "REPORT zp.\nWRITE 'hi'."
    assert route.calls.last.request.url.params["version"] == "inactive"
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_logout_clears_session_state():
    respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    respx.get(path="/sap/public/bc/icf/logoff").mock(return_value=httpx.Response(200))
    query = respx.post(path="/sap/bc/adt/datapreview/freestyle").mock(
        return_value=httpx.Response(200, content=TABLE_XML)
    )
    client = _client()

    await client.login()
    assert await client.logout() is True
    assert not client.is_logged_in

    await client.run_query("SELECT 1")
    assert "x-csrf-token" not in query.calls.last.request.headers
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_drop_session_uses_stateless_request():
    route = respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    client = _client()

    await client.login()
    assert await client.drop_session() is True

    assert route.calls.last.request.headers["X-sap-adt-sessiontype"] == "stateless"
    assert not client.is_logged_in
    await client.close()


@pytest.mark.asyncio
async def test_binding_without_url_is_rejected():
    client = _client()

    with pytest.raises(AdtError, match="no url"):
        await client.binding_details({"name": "ZUI_DEMO"})
    await client.close()


def test_from_config():
    config = AdtConnectionConfig(
        url=f"{BASE_URL}/", user="DEVELOPER", password="secret", client="100"
    )
    client = AdtClient.from_config(config)

    assert client.base_url == BASE_URL
    assert client.client == "100"
    assert not client.is_logged_in


@pytest.mark.asyncio
@respx.mock
async def test_unauthorized_response_drops_local_session():
    respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    respx.post(path=FREESTYLE).mock(return_value=httpx.Response(401, content=b""))
    client = _client()

    await client.login()
    with pytest.raises(AdtError) as exc_info:
        await client.run_query("SELECT * FROM t000")

    assert exc_info.value.status_code == 401
    assert not client.is_logged_in
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_not_found_keeps_session():
    respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    respx.get(path="/sap/bc/adt/oo/classes/zcl_missing").mock(
        return_value=httpx.Response(404, content=ERROR_XML)
    )
    client = _client()

    await client.login()
    with pytest.raises(AdtError):
        await client.object_structure("/sap/bc/adt/oo/classes/zcl_missing")

    assert client.is_logged_in
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_forbidden_without_csrf_request_keeps_session():
    respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    respx.post(path=FREESTYLE).mock(return_value=httpx.Response(403, content=ERROR_XML))
    client = _client()

    await client.login()
    with pytest.raises(AdtError):
        await client.run_query("SELECT * FROM t000")

    assert client.is_logged_in
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_expired_csrf_token_triggers_new_login_on_next_call():
    login = respx.get(path=GRAPH).mock(
        side_effect=[
            httpx.Response(200, headers={"x-csrf-token": "tok1"}),
            httpx.Response(200, headers={"x-csrf-token": "tok2"}),
        ]
    )
    query = respx.post(path=FREESTYLE).mock(
        side_effect=[
            httpx.Response(403, headers={"x-csrf-token": "Required"}),
            httpx.Response(200, content=TABLE_XML),
        ]
    )
    client = _client()
    server = AdtMcpServer(client=client)
    args = {"sqlQuery": "SELECT * FROM t000"}

    first = await server.invoke("runSqlQuery", args)
    assert first.isError is True
    assert json.loads(first.content[0].text)["code"] == INTERNAL_ERROR
    assert not client.is_logged_in

    second = await server.invoke("runSqlQuery", args)
    assert second.isError is False
    assert json.loads(second.content[0].text)["status"] == "success"

    assert login.call_count == 2
    assert query.calls.last.request.headers["x-csrf-token"] == "tok2"
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_entity_declarations_in_response_are_rejected():
    respx.get(path=GRAPH).mock(
        return_value=httpx.Response(200, headers={"x-csrf-token": "tok123"})
    )
    respx.post(path=FREESTYLE).mock(
        return_value=httpx.Response(
            200,
            content=(
                '<!DOCTYPE r [<!ENTITY a "aaaaaaaaaa"><!ENTITY b "&a;&a;&a;&a;">]>'
                "<r>&b;</r>"
            ),
        )
    )
    client = _client()

    await client.login()
    with pytest.raises(EntitiesForbidden):
        await client.run_query("SELECT * FROM t000")

    server = AdtMcpServer(client=client)
    result = await server.invoke("runSqlQuery", {"sqlQuery": "SELECT * FROM t000"})
    assert result.isError is True
    assert json.loads(result.content[0].text) == {
        "error": INTERNAL_ERROR_MESSAGE,
        "code": INTERNAL_ERROR,
    }
    await client.close()
