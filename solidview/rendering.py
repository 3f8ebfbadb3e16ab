"""Markdown to HTML conversion with Mermaid placeholders and Pygments code blocks."""

from __future__ import annotations

import html
import json
import os
import re
from pathlib import Path

from markdown_it import MarkdownIt
from mdit_py_plugins.anchors import anchors_plugin
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from .config import MERMAID_SCRIPT_ENV

COPY_LABEL = "Copy"
COPY_FEEDBACK_MS = 2000
PLAIN_TEXT_LANGUAGE = "plaintext"
MERMAID_CDN_SOURCE = "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.min.js"
MERMAID_CONFIG = {
    "startOnLoad": False,
    "theme": "dark",
    "securityLevel": "loose",
    "themeVariables": {
        "primaryColor": "#661A25",
        "primaryTextColor": "#fff",
        "primaryBorderColor": "#872341",
        "lineColor": "#E17564",
        "secondaryColor": "#4D1425",
        "tertiaryColor": "#09122C",
        "textColor": "#E17564",
        "mainBkg": "#09122C",
        "nodeBorder": "#872341",
        "clusterBkg": "rgba(135, 35, 65, 0.15)",
        "titleColor": "#fff",
        "edgeLabelBackground": "#09122C",
        "nodeTextColor": "#fff",
        "labelBackgroundColor": "#09122C",
        "classText": "#fff",
        "noteBackgroundColor": "#BE3144",
        "noteBorderColor": "#872341",
        "errorBkgColor": "#661A25",
        "errorTextColor": "#fff",
        "warningBkgColor": "#8B4513",
        "warningTextColor": "#fff",
        "successBkgColor": "#1B4D3E",
        "successTextColor": "#fff",
    },
}

_LANGUAGE_CLASS_RE = re.compile(r"[^\w+#.-]")


def error_fragment() -> str:
    """Static content shown when the document batch could not be loaded."""
    return """<h1>Error Loading Content</h1>
<p>Unable to load the documentation. Please try:</p>
<ul>
  <li>Checking that the documentation directory or URL is correct</li>
  <li>Checking if all README.md files are present in their respective folders</li>
  <li>Pressing Reload (F5) once the documents are available</li>
</ul>
"""


def loading_fragment() -> str:
    return "<p>Loading content...</p>\n"


class MarkdownRenderer:
    """Converts markdown to HTML fragments and builds the page that hosts them."""

    def __init__(self, pygments_style: str = "monokai") -> None:
        self._mermaid_local_script = self._resolve_local_mermaid_script()
        self._pygments_style = pygments_style
        self._code_formatter = HtmlFormatter(nowrap=True)
        self._md = MarkdownIt("commonmark", {"html": True, "typographer": True}).enable("table").enable("strikethrough")
        # Heading ids let in-document `#section` links scroll in place.
        self._md.use(anchors_plugin, min_level=1, max_level=3)

        def custom_fence(tokens, idx, options, env):
            token = tokens[idx]
            info = token.info.strip().split(maxsplit=1)[0].lower() if token.info else ""
            if info == "mermaid":
                # Diagram source stays as text until Mermaid renders it in-page.
                return f'<div class="mermaid">\n{html.escape(token.content)}\n</div>\n'
            return self._code_block_html(token.content, info)

        def custom_code_block(tokens, idx, options, env):
            return self._code_block_html(tokens[idx].content, "")

        self._md.renderer.rules["fence"] = custom_fence
        self._md.renderer.rules["code_block"] = custom_code_block

    def _resolve_local_mermaid_script(self) -> Path | None:
        """Locate a local Mermaid bundle to use before CDN fallback."""
        env_value = os.environ.get(MERMAID_SCRIPT_ENV, "").strip()
        candidates: list[Path] = []
        if env_value:
            candidates.append(Path(env_value).expanduser())

        app_dir = Path(__file__).resolve().parent
        candidates.extend(
            [
                app_dir / "vendor" / "mermaid" / "mermaid.min.js",
                app_dir / "vendor" / "mermaid" / "dist" / "mermaid.min.js",
                Path("/usr/share/javascript/mermaid/mermaid.min.js"),
                Path("/usr/share/nodejs/mermaid/dist/mermaid.min.js"),
            ]
        )

        for candidate in candidates:
            try:
                if candidate.is_file():
                    return candidate.resolve()
            except OSError:
                continue
        return None

    def mermaid_script_sources(self) -> list[str]:
        """Return local-first Mermaid script URLs with CDN fallback."""
        sources: list[str] = []
        if self._mermaid_local_script is not None:
            sources.append(self._mermaid_local_script.as_uri())
        sources.append(MERMAID_CDN_SOURCE)
        return list(dict.fromkeys(sources))

    @staticmethod
    def _lexer_for(language: str):
        """Pick a Pygments lexer, falling back to plain text for unknown tags."""
        if language:
            try:
                # stripnl would drop leading blank lines from the visible code.
                return get_lexer_by_name(language, stripnl=False), _LANGUAGE_CLASS_RE.sub("", language)
            except ClassNotFound:
                pass
        return TextLexer(stripnl=False), PLAIN_TEXT_LANGUAGE

    def _code_block_html(self, code: str, language: str) -> str:
        lexer, language_class = self._lexer_for(language)
        highlighted = highlight(code, lexer, self._code_formatter)
        return (
            '<div class="code-block">'
            f'<button class="copy-btn" type="button" aria-label="Copy code to clipboard">{COPY_LABEL}</button>'
            f'<pre class="highlight"><code class="language-{language_class}">{highlighted}</code></pre>'
            "</div>\n"
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Convert one document to the HTML injected into the content container."""
        return self._md.render(markdown_text)

    def render_shell(self, title: str = "SOLID Principles") -> str:
        """Build the page loaded once into the preview; documents are swapped into `#content`."""
        escaped_title = html.escape(title)
        code_styles = HtmlFormatter(style=self._pygments_style).get_style_defs(".highlight")
        mermaid_sources_json = json.dumps(self.mermaid_script_sources())
        mermaid_config_json = json.dumps(MERMAID_CONFIG)
        copy_label_json = json.dumps(COPY_LABEL)
        return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>{escaped_title}</title>
  <style>
    :root {{
      color-scheme: dark;
      --fg: #f3e9e6;
      --bg: #09122C;
      --accent: #E17564;
      --accent-strong: #BE3144;
      --border: #872341;
      --code-bg: #1a1f36;
    }}
    html, body {{
      margin: 0;
      padding: 0;
      background: var(--bg);
      color: var(--fg);
      font-family: "Noto Sans", "DejaVu Sans", sans-serif;
      line-height: 1.6;
      font-size: 16px;
    }}
    main {{
      max-width: 980px;
      margin: 0 auto;
      padding: 1.1rem 1.4rem 4rem 1.4rem;
    }}
    h1, h2, h3 {{
      color: var(--accent);
    }}
    a {{
      color: var(--accent);
    }}
    pre, code {{
      font-family: "Noto Sans Mono", "DejaVu Sans Mono", monospace;
    }}
    code {{
      background: var(--code-bg);
      border-radius: 4px;
      padding: 0.1rem 0.35rem;
    }}
    pre {{
      background: var(--code-bg);
      border: 1px solid var(--border);
      border-radius: 6px;
      padding: 0.8rem;
      overflow: auto;
    }}
    pre > code {{
      background: transparent;
      padding: 0;
    }}
    .code-block {{
      position: relative;
    }}
    .copy-btn {{
      position: absolute;
      top: 0.45rem;
      right: 0.45rem;
      border: 1px solid var(--border);
      border-radius: 5px;
      background: #4D1425;
      color: #fff;
      font-size: 0.78rem;
      padding: 0.15rem 0.55rem;
      cursor: pointer;
      opacity: 0.85;
    }}
    .copy-btn:hover {{
      opacity: 1;
    }}
    .copy-btn.copied {{
      background: #1B4D3E;
    }}
    .copy-btn.copy-failed {{
      background: var(--accent-strong);
    }}
    table {{
      border-collapse: collapse;
    }}
    th, td {{
      border: 1px solid var(--border);
      padding: 0.4rem 0.6rem;
    }}
    .mermaid {{
      margin: 0.65rem 0 0.95rem 0;
      text-align: center;
    }}
    .mermaid svg {{
      max-width: 100%;
      height: auto;
    }}
    .mermaid.mermaid-error {{
      border: 1px dashed var(--accent-strong);
      text-align: left;
      white-space: pre-wrap;
      font-family: "Noto Sans Mono", "DejaVu Sans Mono", monospace;
    }}
{code_styles}
  </style>
  <script>
    window.__solidviewMermaidSources = {mermaid_sources_json};
    window.__solidviewMermaidConfig = {mermaid_config_json};
    window.__solidviewMermaidLoadPromise = null;
    window.__solidviewCopyLabel = {copy_label_json};
    window.__solidviewCopyFeedbackMs = {COPY_FEEDBACK_MS};

    window.__solidviewLoadMermaidScript = () => {{
      if (window.__solidviewMermaidLoadPromise) {{
        return window.__solidviewMermaidLoadPromise;
      }}
      window.__solidviewMermaidLoadPromise = (async () => {{
        const sources = Array.isArray(window.__solidviewMermaidSources) ? window.__solidviewMermaidSources : [];
        for (const src of sources) {{
          try {{
            await new Promise((resolve, reject) => {{
              const script = document.createElement("script");
              script.src = src;
              script.defer = true;
              script.onload = () => resolve(true);
              script.onerror = () => reject(new Error(`Failed to load ${{src}}`));
              document.head.appendChild(script);
            }});
            if (window.mermaid) {{
              mermaid.initialize(window.__solidviewMermaidConfig);
              return true;
            }}
          }} catch (error) {{
            console.error("solidview Mermaid script load failed:", src, String(error));
          }}
        }}
        return false;
      }})();
      return window.__solidviewMermaidLoadPromise;
    }};

    window.__solidviewRenderDiagrams = async () => {{
      const blocks = Array.from(document.querySelectorAll("#content .mermaid"));
      if (!blocks.length) {{
        return 0;
      }}
      for (const block of blocks) {{
        // Keep the diagram source so a repeated run starts from text, not SVG.
        if (!block.dataset.solidviewSource) {{
          block.dataset.solidviewSource = (block.textContent || "").trim();
        }}
      }}
      const loaded = await window.__solidviewLoadMermaidScript();
      if (!loaded || !window.mermaid) {{
        console.error("solidview Mermaid unavailable; diagrams left as source text");
        return 0;
      }}
      for (const block of blocks) {{
        if (!block.isConnected) {{
          continue;
        }}
        block.removeAttribute("data-processed");
        block.classList.remove("mermaid-error");
        block.textContent = block.dataset.solidviewSource || "";
      }}
      try {{
        await mermaid.run({{ querySelector: "#content .mermaid" }});
      }} catch (error) {{
        const message = error && error.message ? error.message : String(error);
        console.error("solidview Mermaid rendering error:", message);
        for (const block of blocks) {{
          if (block.isConnected && !block.querySelector("svg")) {{
            block.classList.add("mermaid-error");
          }}
        }}
      }}
      return blocks.length;
    }};

    window.__solidviewSetBase = (href) => {{
      let base = document.getElementById("solidview-base");
      if (!base) {{
        base = document.createElement("base");
        base.id = "solidview-base";
        document.head.prepend(base);
      }}
      base.href = href;
    }};

    window.__solidviewShowContent = (fragment, baseHref) => {{
      const container = document.getElementById("content");
      if (!container) {{
        return false;
      }}
      if (baseHref) {{
        // Relative links and images resolve against the shown document.
        window.__solidviewSetBase(baseHref);
      }}
      container.innerHTML = fragment;
      window.scrollTo(0, 0);
      window.__solidviewRenderDiagrams();
      return true;
    }};

    window.__solidviewCopyText = (text) => {{
      if (navigator.clipboard && navigator.clipboard.writeText) {{
        return navigator.clipboard.writeText(text);
      }}
      return new Promise((resolve, reject) => {{
        const textarea = document.createElement("textarea");
        textarea.value = text;
        textarea.style.position = "fixed";
        textarea.style.opacity = "0";
        document.body.appendChild(textarea);
        textarea.select();
        try {{
          if (document.execCommand("copy")) {{
            resolve(true);
          }} else {{
            reject(new Error("copy command was rejected"));
          }}
        }} catch (error) {{
          reject(error);
        }} finally {{
          document.body.removeChild(textarea);
        }}
      }});
    }};

    window.__solidviewFlashCopyButton = (button, label, className) => {{
      if (button.__solidviewResetTimer) {{
        window.clearTimeout(button.__solidviewResetTimer);
      }}
      button.classList.remove("copied", "copy-failed");
      button.classList.add(className);
      button.textContent = label;
      button.__solidviewResetTimer = window.setTimeout(() => {{
        button.textContent = window.__solidviewCopyLabel;
        button.classList.remove("copied", "copy-failed");
        button.__solidviewResetTimer = null;
      }}, window.__solidviewCopyFeedbackMs);
    }};

    document.addEventListener("click", (event) => {{
      const button = event.target instanceof Element ? event.target.closest(".copy-btn") : null;
      if (!button) {{
        return;
      }}
      const block = button.closest(".code-block");
      const code = block ? block.querySelector("pre code") : null;
      if (!code) {{
        return;
      }}
      window.__solidviewCopyText(code.textContent || "")
        .then(() => window.__solidviewFlashCopyButton(button, "Copied!", "copied"))
        .catch((error) => {{
          console.error("solidview clipboard write failed:", error && error.message ? error.message : String(error));
          window.__solidviewFlashCopyButton(button, "Error", "copy-failed");
        }});
    }});

    window.__solidviewLoadMermaidScript();
  </script>
</head>
<body>
  <main id="content">{loading_fragment()}</main>
</body>
</html>
"""


def content_swap_script(fragment: str, base_href: str | None = None) -> str:
    """JavaScript that replaces the container's content and re-renders diagrams.

    `base_href` becomes the page's `<base>` so relative links inside the
    fragment resolve against the document it came from.
    """
    return f"""
(() => {{
  if (!window.__solidviewShowContent) {{
    return false;
  }}
  return window.__solidviewShowContent({json.dumps(fragment)}, {json.dumps(base_href)});
}})();
"""


def diagram_render_script() -> str:
    """JavaScript that re-runs Mermaid over the current content."""
    return """
(() => {
  if (window.__solidviewRenderDiagrams) {
    window.__solidviewRenderDiagrams();
  }
})();
"""


def scroll_to_anchor_script(anchor: str) -> str:
    """JavaScript that scrolls the element with id `anchor` into view."""
    return f"""
(() => {{
  const node = document.getElementById({json.dumps(anchor)});
  if (node) {{
    node.scrollIntoView();
  }}
  return Boolean(node);
}})();
"""
