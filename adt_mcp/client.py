"""
Async ADT REST client.

Thin wrapper over the ABAP Development Tools HTTP API. Every operation
returns plain Python data decoded from the XML payloads, or raises
``AdtError`` when the backend answers with an error status.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from typing import Any
from urllib.parse import quote
from xml.sax.saxutils import escape

import httpx

from adt_mcp.config import AdtConnectionConfig
from adt_mcp.xmlutil import decode_table, find_attribute, find_text, parse_xml

logger = logging.getLogger(__name__)

CSRF_HEADER = "x-csrf-token"
SESSION_TYPE_HEADER = "X-sap-adt-sessiontype"


class AdtError(Exception):
    """Backend call failed.

    Attributes:
        message: Top-level description (usually the HTTP status line)
        status_code: HTTP status, if a response was received
        response_message: Message extracted from the backend's error body
        exception_type: ADT exception type id, if reported
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_message: str | None = None,
        exception_type: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_message = response_message
        self.exception_type = exception_type

    @classmethod
    def from_response(cls, response: httpx.Response) -> AdtError:
        body = response.content
        return cls(
            f"Request failed with status code {response.status_code}",
            status_code=response.status_code,
            response_message=find_text(body, "localizedMessage", "message") if body else None,
            exception_type=find_attribute(body, "type", "id") if body else None,
        )


def _bool(value: bool) -> str:
    return "true" if value else "false"


class AdtClient:
    """Stateful ADT client sharing one HTTP connection pool and cookie jar."""

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        client: str | None = None,
        language: str | None = None,
        stateful: bool = True,
        verify: bool = True,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = url.rstrip("/")
        self.user = user
        self.client = client
        self.language = language
        self.stateful = stateful
        self._csrf_token: str | None = None
        self._logged_in = False
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(user, password),
            verify=verify,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: AdtConnectionConfig) -> AdtClient:
        return cls(
            url=config.url,
            user=config.user,
            password=config.password,
            client=config.client,
            language=config.language,
            stateful=config.stateful,
            verify=config.verify_tls,
            timeout=config.timeout,
        )

    @property
    def is_logged_in(self) -> bool:
        return self._logged_in

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> AdtClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _params(self, params: Mapping[str, Any] | None) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        if self.client:
            merged["sap-client"] = self.client
        if self.language:
            merged["sap-language"] = self.language
        for key, value in (params or {}).items():
            if value is None:
                continue
            merged[key] = _bool(value) if isinstance(value, bool) else value
        return merged

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        content: str | None = None,
        accept: str = "*/*",
        content_type: str | None = None,
        session_type: str | None = None,
    ) -> httpx.Response:
        headers = {"Accept": accept}
        session = session_type or ("stateful" if self.stateful else None)
        if session:
            headers[SESSION_TYPE_HEADER] = session
        if method != "GET" and self._csrf_token:
            headers[CSRF_HEADER] = self._csrf_token
        if content_type:
            headers["Content-Type"] = content_type

        logger.debug(f"{method} {path}")
        response = await self._http.request(
            method,
            path,
            params=self._params(params),
            content=content.encode("utf-8") if content is not None else None,
            headers=headers,
        )
        if response.status_code >= 400:
            if self._session_expired(response):
                logger.info(f"Session on {self.base_url} expired, next call logs in again")
                self._reset_session()
            raise AdtError.from_response(response)
        return response

    @staticmethod
    def _session_expired(response: httpx.Response) -> bool:
        """401, or 403 asking for a fresh CSRF token."""
        if response.status_code == 401:
            return True
        return (
            response.status_code == 403
            and response.headers.get(CSRF_HEADER, "").lower() == "required"
        )

    async def _get_xml(self, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request("GET", path, **kwargs)
        return parse_xml(response.content)

    async def _post_xml(self, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request("POST", path, **kwargs)
        return parse_xml(response.content)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self) -> bool:
        """Open a session and fetch the CSRF token for modifying requests."""
        response = await self._http.get(
            "/sap/bc/adt/compatibility/graph",
            params=self._params(None),
            headers={CSRF_HEADER: "fetch", "Accept": "*/*"},
        )
        if response.status_code >= 400:
            raise AdtError.from_response(response)
        self._csrf_token = response.headers.get(CSRF_HEADER)
        self._logged_in = True
        logger.info(f"Logged in to {self.base_url} as {self.user}")
        return True

    async def logout(self) -> bool:
        """Close the session on the server and forget local session state."""
        try:
            await self._request("GET", "/sap/public/bc/icf/logoff")
        finally:
            self._reset_session()
        logger.info(f"Logged out from {self.base_url}")
        return True

    async def drop_session(self) -> bool:
        """End the stateful backend session; the next call logs in again."""
        try:
            await self._request(
                "GET", "/sap/bc/adt/compatibility/graph", session_type="stateless"
            )
        finally:
            self._reset_session()
        return True

    def _reset_session(self) -> None:
        self._csrf_token = None
        self._logged_in = False
        self._http.cookies.clear()

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    async def search_object(
        self, query: str, object_type: str | None = None, max_results: int = 100
    ) -> list[dict[str, Any]]:
        data = await self._get_xml(
            "/sap/bc/adt/repository/informationsystem/search",
            params={
                "operation": "quickSearch",
                "query": query,
                "maxResults": max_results,
                "objectType": object_type,
            },
        )
        refs = data.get("objectReferences", {})
        found = refs.get("objectReference", []) if isinstance(refs, dict) else []
        return found if isinstance(found, list) else [found]

    async def object_structure(self, object_url: str) -> dict[str, Any]:
        return await self._get_xml(object_url)

    async def get_object_source(self, source_url: str, version: str | None = None) -> str:
        response = await self._request(
            "GET", source_url, params={"version": version}, accept="text/plain"
        )
        return response.text

    async def find_object_path(self, object_url: str) -> list[dict[str, Any]]:
        data = await self._post_xml(
            "/sap/bc/adt/repository/nodepath", params={"uri": object_url}
        )
        nodes = data.get("abap", {}).get("values", {}).get("DATA", {})
        if isinstance(nodes, dict):
            nodes = nodes.get("TREE_CONTENT", {}).get("SEU_ADT_OBJECT_NODE", [])
        return nodes if isinstance(nodes, list) else [nodes]

    async def revisions(self, object_url: str, cls_include: str | None = None) -> dict[str, Any]:
        base = f"{object_url}/includes/{cls_include}" if cls_include else f"{object_url}/source/main"
        return await self._get_xml(
            f"{base}/versions", accept="application/atom+xml;type=feed"
        )

    async def node_contents(
        self,
        parent_type: str,
        parent_name: str | None = None,
        user_name: str | None = None,
        parent_tech_name: str | None = None,
        rebuild_tree: bool = False,
        parentnodes: Sequence[Any] | None = None,
    ) -> dict[str, Any]:
        keys = "".join(
            f"<TV_NODEKEY>{escape(str(node))}</TV_NODEKEY>" for node in (parentnodes or ["000000"])
        )
        body = (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<asx:abap xmlns:asx="http://www.sap.com/abapxml" version="1.0">'
            f"<asx:values><DATA>{keys}</DATA></asx:values></asx:abap>"
        )
        return await self._post_xml(
            "/sap/bc/adt/repository/nodestructure",
            params={
                "parent_type": parent_type,
                "parent_name": parent_name,
                "user_name": user_name,
                "parent_tech_name": parent_tech_name,
                "rebuild_tree": rebuild_tree,
                "withShortDescriptions": True,
            },
            content=body,
            content_type="application/xml",
        )

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    async def class_components(self, class_url: str) -> dict[str, Any]:
        return await self._get_xml(
            f"{class_url}/objectstructure",
            params={"version": "active", "withShortDescriptions": True},
        )

    async def binding_details(self, binding: Mapping[str, Any]) -> dict[str, Any]:
        url = binding.get("url") or binding.get("uri") or binding.get("href")
        if not url:
            raise AdtError("Service binding has no url")
        return await self._get_xml(str(url))

    # ------------------------------------------------------------------
    # Code analysis
    # ------------------------------------------------------------------

    async def find_definition(
        self,
        url: str,
        source: str,
        line: int,
        start_col: int,
        end_col: int,
        implementation: bool = False,
        main_program: str | None = None,
    ) -> dict[str, Any]:
        return await self._post_xml(
            "/sap/bc/adt/navigation/target",
            params={
                "uri": f"{url}#start={line},{start_col};end={line},{end_col}",
                "filter": "implementation" if implementation else "definition",
                "mainProgram": main_program,
            },
            content=source,
            content_type="text/plain",
        )

    async def usage_references(
        self, url: str, line: int | None = None, column: int | None = None
    ) -> list[dict[str, Any]]:
        uri = f"{url}#start={line},{column}" if line is not None and column is not None else url
        body = (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<usagereferences:usageReferenceRequest '
            'xmlns:usagereferences="http://www.sap.com/adt/ris/usageReferences">'
            "<usagereferences:affectedObjects/></usagereferences:usageReferenceRequest>"
        )
        data = await self._post_xml(
            "/sap/bc/adt/repository/informationsystem/usageReferences",
            params={"uri": uri},
            content=body,
            content_type="application/vnd.sap.adt.repository.usagereferences.request.v1+xml",
            accept="application/vnd.sap.adt.repository.usagereferences.result.v1+xml",
        )
        result = data.get("usageReferenceResult", {})
        objects = result.get("referencedObjects", {}) if isinstance(result, dict) else {}
        refs = objects.get("referencedObject", []) if isinstance(objects, dict) else []
        return refs if isinstance(refs, list) else [refs]

    async def usage_reference_snippets(
        self, references: Sequence[Mapping[str, Any]]
    ) -> dict[str, Any]:
        identifiers = "".join(
            "<usagereferences:objectIdentifier "
            f'optional="false">{escape(str(ref.get("objectIdentifier", "")))}'
            "</usagereferences:objectIdentifier>"
            for ref in references
        )
        body = (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<usagereferences:usageSnippetRequest '
            'xmlns:usagereferences="http://www.sap.com/adt/ris/usageReferences">'
            f"<usagereferences:objectIdentifiers>{identifiers}"
            "</usagereferences:objectIdentifiers>"
            "<usagereferences:affectedObjects/></usagereferences:usageSnippetRequest>"
        )
        return await self._post_xml(
            "/sap/bc/adt/repository/informationsystem/usageSnippets",
            content=body,
            content_type="application/vnd.sap.adt.repository.usagesnippets.request.v1+xml",
            accept="application/vnd.sap.adt.repository.usagesnippets.result.v1+xml",
        )

    async def fragment_mappings(self, url: str, type_: str, name: str) -> dict[str, Any]:
        return await self._get_xml(
            "/sap/bc/adt/urifragmentmappings",
            params={"uri": url, "type": type_, "name": name},
        )

    async def abap_documentation(
        self,
        object_uri: str,
        body: str,
        line: int,
        column: int,
        language: str = "EN",
    ) -> str:
        response = await self._request(
            "POST",
            "/sap/bc/adt/docu/abap/langu",
            params={
                "uri": f"{object_uri}#start={line},{column}",
                "language": language,
                "format": "eclipse",
            },
            content=body,
            content_type="text/plain",
            accept="application/vnd.sap.adt.docu.v1+html,text/html",
        )
        return response.text

    async def main_programs(self, include_url: str) -> list[dict[str, Any]]:
        data = await self._get_xml(f"{include_url}/mainprograms")
        refs = data.get("objectReferences", {})
        found = refs.get("objectReference", []) if isinstance(refs, dict) else []
        return found if isinstance(found, list) else [found]

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def annotation_definitions(self) -> str:
        response = await self._request(
            "GET",
            "/sap/bc/adt/ddic/cds/annotation/definitions",
            accept="application/vnd.sap.adt.cds.annotation.definitions.v1+xml",
        )
        return response.text

    async def object_types(self) -> list[dict[str, Any]]:
        data = await self._get_xml(
            "/sap/bc/adt/repository/informationsystem/objecttypes",
            params={"maxItemCount": 999, "name": "*", "data": "usedByProvider"},
        )
        types = data.get("objecttypes", {})
        found = types.get("objecttype", []) if isinstance(types, dict) else []
        return found if isinstance(found, list) else [found]

    # ------------------------------------------------------------------
    # Dictionary and data preview
    # ------------------------------------------------------------------

    async def ddic_element(
        self,
        path: str,
        get_target_for_association: bool = False,
        get_extension_views: bool = True,
        get_secondary_objects: bool = True,
    ) -> dict[str, Any]:
        return await self._get_xml(
            "/sap/bc/adt/ddic/ddl/elementinfo",
            params={
                "path": path,
                "getTargetForAssociation": get_target_for_association,
                "getExtensionViews": get_extension_views,
                "getSecondaryObjects": get_secondary_objects,
            },
        )

    async def ddic_repository_access(self, path: str) -> dict[str, Any]:
        return await self._get_xml(
            "/sap/bc/adt/ddic/ddl/ddicrepositoryaccess",
            params={"datasource": path, "exact": True},
        )

    async def package_search_help(self, help_type: str, name: str = "*") -> dict[str, Any]:
        return await self._get_xml(
            f"/sap/bc/adt/packages/valuehelps/{quote(help_type)}",
            params={"name": name or "*"},
        )

    async def table_contents(
        self,
        ddic_entity_name: str,
        row_number: int = 100,
        decode: bool = True,
        sql_query: str = "",
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/sap/bc/adt/datapreview/ddic",
            params={"rowNumber": row_number, "ddicEntityName": ddic_entity_name},
            content=sql_query,
            content_type="text/plain",
            accept="application/xml, application/vnd.sap.adt.datapreview.table.v1+xml",
        )
        return decode_table(response.content) if decode else parse_xml(response.content)

    async def run_query(
        self, sql_query: str, row_number: int = 100, decode: bool = True
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/sap/bc/adt/datapreview/freestyle",
            params={"rowNumber": row_number},
            content=sql_query,
            content_type="text/plain",
            accept="application/xml, application/vnd.sap.adt.datapreview.table.v1+xml",
        )
        return decode_table(response.content) if decode else parse_xml(response.content)
