"""
Content Rewriter Service
HTML rewrite pipeline that makes a fetched page render inside a foreign viewport
"""

import re
from typing import Iterator, List, Optional

from bs4 import BeautifulSoup, Tag
from bs4.element import Doctype, NavigableString, PreformattedString
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter
from loguru import logger

from config.settings import Settings
from .models import RewriteContext, RewriteResult, RewriteSkipped
from .runtime_shim import SHIM_ELEMENT_ID, generate_shim
from .site_profiles import get_profile_rule


# Void elements are written as <base ...>, not <base .../>
HTML_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)

INJECTED_MARKER = "data-frameproxy"
RESET_STYLE_ID = "frameproxy-reset"

RESTRICTING_HTTP_EQUIV = {
    "x-frame-options",
    "content-security-policy",
    "content-security-policy-report-only",
}

PERMISSIVE_CSP = "default-src * 'unsafe-inline' 'unsafe-eval' data: blob:; frame-ancestors *;"

RESET_CSS = """
body {
    background: white !important;
    color: black !important;
    min-height: 100vh !important;
    margin: 0 !important;
    padding: 0 !important;
}
* {
    box-sizing: border-box !important;
}
/* "You are in an iframe" overlays */
[style*="position: fixed"][style*="z-index"],
[style*="position:fixed"][style*="z-index"] {
    display: none !important;
}
.iframe-blocker, .frame-blocker, [class*="frame-deny"] {
    display: none !important;
}
"""

URL_ATTRIBUTES = ("href", "src", "action")

JS_SCRIPT_TYPES = {
    "",
    "text/javascript",
    "application/javascript",
    "module",
    "text/ecmascript",
    "application/ecmascript",
}

INLINE_HEADER_RE = re.compile(
    r"(?:X-Frame-Options|Content-Security-Policy)\s*:\s*[^;\"'\n\r]*",
    re.IGNORECASE,
)

# window, self, top, parent, optionally as window.X / self.X
_FRAME_REF = r"(?:(?:window|self)\.)?(?:top|parent|self|window)"
_FRAME_LOCATION = _FRAME_REF + r"\.location(?:\.(?:href|host|hostname|origin))?"
_COMPARE_OP = r"===|!==|==|!="


def _comparison(operand: str) -> "re.Pattern[str]":
    return re.compile(
        rf"(?<![\w$.])(?P<left>{operand})\s*(?P<op>{_COMPARE_OP})\s*(?P<right>{operand})(?![\w$.(])"
    )


# Most specific idioms first
FRAME_CHECK_PATTERNS = [
    ("location-comparison", _comparison(_FRAME_LOCATION)),
    ("reference-comparison", _comparison(_FRAME_REF)),
]

_STRING_LITERAL = r"(?:\"[^\"\\\n]*(?:\\.[^\"\\\n]*)*\"|'[^'\\\n]*(?:\\.[^'\\\n]*)*')"

REDIRECT_RE = re.compile(
    r"(?<![\w$.])(?:(?:window|self|top|parent|document)\.)*location(?:\.href)?"
    rf"\s*=(?!=)\s*{_STRING_LITERAL}"
)

_WINDOWISH = {"window", "self"}


def _frame_name(operand: str) -> str:
    """window.top.location.href -> top, self -> self"""
    parts = operand.split(".")
    if "location" in parts:
        parts = parts[: parts.index("location")]
    return parts[-1]


def _force_not_embedded(match: "re.Match[str]") -> str:
    left = _frame_name(match.group("left"))
    right = _frame_name(match.group("right"))

    if left == right or {left, right} <= _WINDOWISH:
        return match.group(0)

    return "true" if match.group("op") in ("==", "===") else "false"


def neutralize_frame_checks(script: str) -> str:
    """Rewrite embedding checks so they always resolve to 'not embedded'"""
    for _name, pattern in FRAME_CHECK_PATTERNS:
        script = pattern.sub(_force_not_embedded, script)
    return script


def neutralize_redirects(script: str) -> str:
    """Replace literal top-level location assignments with a no-op"""
    return REDIRECT_RE.sub("void 0", script)


def absolutize(value: str, base_url: str) -> str:
    """Anchor root-relative and protocol-relative URLs, leave everything else"""
    stripped = value.strip()
    if stripped.startswith("//"):
        return "https:" + stripped
    if stripped.startswith("/"):
        return base_url + stripped
    return value


class ContentRewriter:
    """Rewrites fetched HTML so it can be displayed inside the viewer"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def rewrite(self, html: str, context: RewriteContext) -> RewriteResult:
        """Run every stage in order; a stage without an anchor is skipped, never fatal"""

        soup = BeautifulSoup(html, "html.parser")
        skipped: List[RewriteSkipped] = []

        self._strip_restriction_signals(soup)
        self._neutralize_scripts(soup)
        self._rewrite_urls(soup, context.base_url)

        if not self._inject_head(soup, context):
            skipped.append(RewriteSkipped("head-injection", "document has no <head>"))

        self._apply_site_profile(soup, context)

        if not self._inject_shim(soup, context):
            skipped.append(RewriteSkipped("shim-injection", "document has no <body>"))

        self._normalize_doctype(soup)

        for skip in skipped:
            logger.debug(f"Rewrite stage {skip.stage} skipped for {context.hostname}: {skip.reason}")

        output = soup.decode(formatter=HTML_FORMATTER)
        logger.debug(f"Rewrote {context.hostname}: {len(html)} -> {len(output)} chars")

        return RewriteResult(html=output, skipped=skipped)

    def _normalize_doctype(self, soup: BeautifulSoup):
        """The serializer writes its own newline after the doctype, drop the one parsed from a previous pass"""

        for node in soup.contents:
            if isinstance(node, Doctype):
                following = node.next_sibling
                if (
                    isinstance(following, NavigableString)
                    and not isinstance(following, PreformattedString)
                    and not following.strip()
                ):
                    following.extract()
                return

    def _inline_scripts(self, soup: BeautifulSoup, javascript_only: bool = True) -> Iterator[Tag]:
        for script in soup.find_all("script"):
            if script.get("src") or script.get("id") == SHIM_ELEMENT_ID:
                continue
            if script.string is None:
                continue
            script_type = (script.get("type") or "").strip().lower()
            if javascript_only and script_type not in JS_SCRIPT_TYPES:
                continue
            yield script

    def _strip_restriction_signals(self, soup: BeautifulSoup):
        """Stage 1: drop restricting meta tags and inline header strings"""

        for meta in soup.find_all("meta"):
            if meta.has_attr(INJECTED_MARKER):
                continue
            http_equiv = (meta.get("http-equiv") or "").strip().lower()
            name = (meta.get("name") or "").strip().lower()
            if http_equiv in RESTRICTING_HTTP_EQUIV or name == "referrer":
                meta.decompose()

        for script in self._inline_scripts(soup, javascript_only=False):
            text = str(script.string)
            cleaned = INLINE_HEADER_RE.sub("", text)
            if cleaned != text:
                script.string = cleaned

    def _neutralize_scripts(self, soup: BeautifulSoup):
        """Stages 2 and 3: frame checks, then literal redirects"""

        for script in self._inline_scripts(soup):
            text = str(script.string)
            rewritten = neutralize_redirects(neutralize_frame_checks(text))
            if rewritten != text:
                script.string = rewritten

        for tag in soup.find_all(True):
            for attr, value in list(tag.attrs.items()):
                if not attr.startswith("on") or not isinstance(value, str):
                    continue
                tag[attr] = neutralize_redirects(neutralize_frame_checks(value))

    def _rewrite_urls(self, soup: BeautifulSoup, base_url: str):
        """Stage 4: root-relative and protocol-relative attributes"""

        for attr in URL_ATTRIBUTES:
            for tag in soup.find_all(attrs={attr: True}):
                value = tag.get(attr)
                if isinstance(value, str):
                    tag[attr] = absolutize(value, base_url)

        for tag in soup.find_all(attrs={"srcset": True}):
            tag["srcset"] = self._rewrite_srcset(tag["srcset"], base_url)

    def _rewrite_srcset(self, srcset: str, base_url: str) -> str:
        parts = []
        for part in srcset.split(","):
            part = part.strip()
            if not part:
                continue
            if " " in part:
                url, descriptor = part.split(" ", 1)
                parts.append(f"{absolutize(url, base_url)} {descriptor.strip()}")
            else:
                parts.append(absolutize(part, base_url))

        return ", ".join(parts)

    def _inject_head(self, soup: BeautifulSoup, context: RewriteContext) -> bool:
        """Stage 5: base, permissive policies and reset styling as first children of <head>"""

        head = soup.head
        if head is None:
            return False
        if soup.find("style", id=RESET_STYLE_ID):
            return True

        injected = [
            soup.new_tag("base", attrs={"href": f"{context.base_url}/"}),
            soup.new_tag(
                "meta",
                attrs={"http-equiv": "Content-Security-Policy", "content": PERMISSIVE_CSP, INJECTED_MARKER: ""},
            ),
            soup.new_tag(
                "meta",
                attrs={"http-equiv": "X-Frame-Options", "content": "ALLOWALL", INJECTED_MARKER: ""},
            ),
        ]

        if not soup.find("meta", attrs={"name": "viewport"}):
            injected.append(
                soup.new_tag("meta", attrs={"name": "viewport", "content": "width=device-width, initial-scale=1"})
            )

        style = soup.new_tag("style", attrs={"id": RESET_STYLE_ID})
        style.string = RESET_CSS
        injected.append(style)

        for position, tag in enumerate(injected):
            head.insert(position, tag)

        return True

    def _apply_site_profile(self, soup: BeautifulSoup, context: RewriteContext):
        """Stage 6: shadow self-detection globals for known hosts"""

        rule = get_profile_rule(context.site_profile)
        if rule is None or not rule.renamed_globals:
            return

        prefix = self.settings.shadow_global_prefix
        patterns = [
            (re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])"), prefix + name)
            for name in rule.renamed_globals
        ]

        renamed = 0
        for script in self._inline_scripts(soup):
            text = str(script.string)
            rewritten = text
            for pattern, shadow in patterns:
                rewritten = pattern.sub(shadow, rewritten)
            if rewritten != text:
                script.string = rewritten
                renamed += 1

        if renamed:
            logger.debug(f"Applied {rule.profile.value} profile to {renamed} scripts on {context.hostname}")

    def _inject_shim(self, soup: BeautifulSoup, context: RewriteContext) -> bool:
        """Stage 7: runtime shim as the last child of <body>"""

        body = soup.body
        if body is None:
            return False
        if soup.find("script", id=SHIM_ELEMENT_ID):
            return True

        fragment = BeautifulSoup(generate_shim(context), "html.parser")
        shim: Optional[Tag] = fragment.find("script")
        body.append(shim.extract())
        return True
