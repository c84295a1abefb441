"""
National Diet Library (NDL) OpenSearch lookup.

Returns RSS; each <item> may carry <dc:identifier xsi:type="dcndl:ISBN">.
The first item that has one wins.
"""

import xml.etree.ElementTree as ET
from typing import Optional

import httpx

from infra.clients.http import create_http_client, request
from infra.errors import IsbnNotFoundError, ResponseSchemaError
from pipeline.schemas import BookInfo


OPENSEARCH_URL = "https://ndlsearch.ndl.go.jp/api/opensearch"

NAMESPACES = {
    "dc": "http://purl.org/dc/elements/1.1/",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}
XSI_TYPE = f"{{{NAMESPACES['xsi']}}}type"


def parse_opensearch(xml_text: str, title: str) -> BookInfo:
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ResponseSchemaError("Failed to parse NDL OpenSearch response", cause=e)

    for item in root.iter("item"):
        for identifier in item.findall("dc:identifier", NAMESPACES):
            if identifier.get(XSI_TYPE) != "dcndl:ISBN" or not identifier.text:
                continue

            isbn = identifier.text.strip().replace("-", "")
            if not isbn:
                continue

            found_title = item.findtext("dc:title", default=title, namespaces=NAMESPACES)
            creator = item.findtext("dc:creator", default=None, namespaces=NAMESPACES)
            return BookInfo(
                isbn=isbn,
                title=found_title.strip() or title,
                authors=(creator.strip(),) if creator else (),
            )

    raise IsbnNotFoundError(title)


class NdlSearch:
    name = "ndl"

    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        max_results: int = 5,
        timeout: float = 10.0,
    ):
        self._owns_http = http is None
        self.http = http or create_http_client(timeout=timeout)
        self.max_results = max_results

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def search_by_title(self, title: str) -> BookInfo:
        response = await request(
            self.http,
            "GET",
            OPENSEARCH_URL,
            "search NDL",
            params={"title": title, "cnt": self.max_results},
        )
        return parse_opensearch(response.text, title)
