"""
Response Classifier
"""

from .models import Classification, UpstreamResponse


def classify(response: UpstreamResponse) -> Classification:
    """Inspect content type and embedding-restriction headers"""

    is_html = "text/html" in (response.content_type or "").lower()

    csp = response.headers.get("content-security-policy", "")
    restricts_embedding = (
        "x-frame-options" in response.headers
        or "frame-ancestors" in csp.lower()
    )

    return Classification(is_html=is_html, restricts_embedding=restricts_embedding)
