"""
Runtime Shim
Script injected at the end of every rewritten document. It runs inside the
proxied page, hides the embedding from the page's own checks and turns every
navigation attempt into a {type: "navigate", url} message to the host.
"""

import json

from .models import RewriteContext


SHIM_ELEMENT_ID = "frameproxy-shim"
NAVIGATE_MESSAGE_TYPE = "navigate"

# Same URL posted again inside this window is a duplicate (click + mousedown, re-fired handlers)
DUPLICATE_WINDOW_MS = 400


def _js_string(value: str) -> str:
    # Must not close the surrounding <script>
    return json.dumps(value).replace("</", "<\\/")


def generate_shim(context: RewriteContext) -> str:
    """Build the <script> element for a page"""

    hostname = _js_string(context.hostname)
    base_url = _js_string(context.base_url + "/")
    page_url = _js_string(context.page_url or context.base_url + "/")
    message_type = _js_string(NAVIGATE_MESSAGE_TYPE)

    return f"""<script id="{SHIM_ELEMENT_ID}">
(function() {{
    'use strict';

    var HOSTNAME = {hostname};
    var BASE_URL = {base_url};
    // srcdoc documents report about:srcdoc, this is the real page address
    var PAGE_URL = {page_url};
    var MESSAGE_TYPE = {message_type};

    // Captured before 'parent' is redefined below
    var hostWindow = window.parent;
    var lastPosted = {{ url: null, at: 0 }};

    function guard(name, fn) {{
        try {{
            fn();
        }} catch (e) {{
            console.warn('[frameproxy] override failed: ' + name, e);
        }}
    }}

    function absolute(url) {{
        try {{
            return new URL(url, document.baseURI || BASE_URL).href;
        }} catch (e) {{
            return String(url);
        }}
    }}

    function relay(url) {{
        if (!url) return;
        var target = absolute(url);
        var now = Date.now();
        if (lastPosted.url === target && now - lastPosted.at < {DUPLICATE_WINDOW_MS}) return;
        lastPosted = {{ url: target, at: now }};
        try {{
            hostWindow.postMessage({{ type: MESSAGE_TYPE, url: target }}, '*');
        }} catch (e) {{
            console.warn('[frameproxy] navigate message failed', e);
        }}
    }}

    function isRelayableHref(href) {{
        if (!href) return false;
        var trimmed = String(href).trim();
        if (!trimmed || trimmed.charAt(0) === '#') return false;
        if (/^javascript:/i.test(trimmed)) return false;
        return true;
    }}

    // ---- frame identity ----
    guard('top', function() {{
        Object.defineProperty(window, 'top', {{ get: function() {{ return window; }}, configurable: true }});
    }});
    guard('parent', function() {{
        Object.defineProperty(window, 'parent', {{ get: function() {{ return window; }}, configurable: true }});
    }});
    guard('frameElement', function() {{
        Object.defineProperty(window, 'frameElement', {{ get: function() {{ return null; }}, configurable: true }});
    }});
    guard('frames', function() {{
        Object.defineProperty(window, 'frames', {{ get: function() {{ return window; }}, configurable: true }});
    }});

    // ---- window.open ----
    guard('open', function() {{
        window.open = function(url) {{
            relay(url);
            return null;
        }};
    }});

    // ---- location mutations ----
    guard('location.assign', function() {{
        window.location.assign = function(url) {{ relay(url); }};
    }});
    guard('location.replace', function() {{
        window.location.replace = function(url) {{ relay(url); }};
    }});
    guard('location.href', function() {{
        Object.defineProperty(window.location, 'href', {{
            get: function() {{ return PAGE_URL; }},
            set: function(url) {{ relay(url); }},
            configurable: true
        }});
    }});

    // ---- anchors and click handlers ----
    function intercept(e) {{
        // Only the middle button opens links on mousedown
        if (e.type === 'mousedown' && e.button !== 1) return;
        var target = e.target;
        if (!target || !target.closest) return;

        // Innermost anchor wins, even when a child element has its own onclick
        var anchor = target.closest('a[href]');
        if (anchor) {{
            if (!isRelayableHref(anchor.getAttribute('href'))) return;
            e.preventDefault();
            e.stopPropagation();
            relay(anchor.href);
        }}
        // [onclick] outside an anchor has no default navigation; whatever it
        // does to location or window.open goes through the overrides above
    }}

    function attach(node) {{
        if (!node || node.nodeType !== 1 || node.__frameproxyBound) return;
        node.__frameproxyBound = true;
        node.addEventListener('click', intercept, true);
        node.addEventListener('mousedown', intercept, true);
    }}

    guard('click', function() {{
        document.addEventListener('click', intercept, true);
        document.addEventListener('mousedown', intercept, true);
    }});

    // ---- forms ----
    guard('submit', function() {{
        document.addEventListener('submit', function(e) {{
            var form = e.target;
            if (!form || form.tagName !== 'FORM') return;
            e.preventDefault();

            var method = (form.getAttribute('method') || 'get').toLowerCase();
            if (method !== 'get') {{
                console.warn('[frameproxy] blocked ' + method.toUpperCase() + ' form to ' + form.action);
                return;
            }}

            var action = absolute(form.getAttribute('action') || PAGE_URL);
            var query = new URLSearchParams(new FormData(form)).toString();
            // GET submission replaces the action's query string
            var url = action.split('#')[0].split('?')[0];
            if (query) url += '?' + query;
            relay(url);
        }}, true);
    }});

    // ---- late-inserted anchors ----
    guard('observer', function() {{
        var observer = new MutationObserver(function(mutations) {{
            mutations.forEach(function(mutation) {{
                mutation.addedNodes.forEach(function(node) {{
                    if (node.nodeType !== 1) return;
                    if (node.matches && node.matches('a[href]')) attach(node);
                    if (node.querySelectorAll) {{
                        node.querySelectorAll('a[href]').forEach(attach);
                    }}
                }});
            }});
        }});
        observer.observe(document.documentElement || document.body, {{ childList: true, subtree: true }});
    }});

    console.log('[frameproxy] shim active for ' + HOSTNAME);
}})();
</script>"""
