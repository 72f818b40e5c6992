"""Network metadata pulled from incoming requests."""

from typing import Dict, List, Union

from starlette.requests import Request

from ..core.attribution import extract_client_ip


def request_headers(request: Request) -> Dict[str, Union[str, List[str]]]:
    """Lowercase header map; repeated headers keep all their values."""
    headers: Dict[str, Union[str, List[str]]] = {}
    for name in request.headers.keys():
        if name in headers:
            continue
        values = request.headers.getlist(name)
        headers[name] = values[0] if len(values) == 1 else values
    return headers


def direct_address(request: Request) -> str:
    return request.client.host if request.client else ""


def client_ip(request: Request) -> str:
    return extract_client_ip(request_headers(request), direct_address(request))
