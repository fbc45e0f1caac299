"""
Design-to-code generation

Turns an uploaded design into:
- an analysis (layout elements, styling, detected components)
- HTML, a Divi layout tree or an Elementor layout tree
- an optional companion plugin when the layout needs modules/widgets
  the page builder's baseline library does not ship

Analysis is templated: the layout is the stock hero section and extra
components come from keywords in the user's prompt.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from app.libs.models import ConversionType


class CodegenError(Exception):
    """Raised when code cannot be generated for a conversion"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


# Fallback texts when the analysis has fewer layout elements than the template needs
FALLBACK_TEXTS = ("Welcome", "Description", "Get Started")

# Prompt keyword -> component the design needs
PROMPT_COMPONENTS = {
    "slider": "slider",
    "carousel": "slider",
    "form": "contact-form",
    "countdown": "countdown",
    "gallery": "gallery",
    "pricing": "pricing-table",
    "testimonial": "testimonials",
    "map": "map",
}

# Component names each builder ships out of the box, used when the
# baseline catalog table is empty
DEFAULT_BASELINE = {
    ConversionType.DIVI: {"hero", "button", "text", "image", "slider", "contact-form", "gallery", "pricing-table", "testimonials", "map"},
    ConversionType.ELEMENTOR: {"hero", "button", "heading", "text", "image", "gallery", "testimonials", "map"},
}


@dataclass
class GeneratedCode:
    """Output of a generator"""
    code: Dict[str, Any]
    companion_plugin: Optional[Dict[str, Any]] = None
    missing_components: List[str] = field(default_factory=list)

    @property
    def needs_companion_plugin(self) -> bool:
        return self.companion_plugin is not None


def detect_components(prompt: Optional[str]) -> List[str]:
    """Return the components named in a prompt, in first-mention order."""
    if not prompt:
        return []
    found: List[str] = []
    for word in re.findall(r"[a-z]+", prompt.lower()):
        stem = word[:-1] if word.endswith("s") else word
        component = PROMPT_COMPONENTS.get(stem) or PROMPT_COMPONENTS.get(word)
        if component and component not in found:
            found.append(component)
    return found


def analyze_design(image_url: str, conversion_type: str, prompt: Optional[str] = None) -> Dict[str, Any]:
    """
    Analyze a design image.

    Args:
        image_url: Public URL of the design image
        conversion_type: Target output format
        prompt: Optional user instructions

    Returns:
        Analysis dict with `layout`, `styling` and `components` keys
    """
    if not image_url:
        raise CodegenError("Conversion has no image")
    ConversionType(conversion_type)

    components = [
        {"name": "hero", "complexity": "basic"},
        {"name": "button", "complexity": "basic"},
    ]
    for name in detect_components(prompt):
        components.append({"name": name, "complexity": "advanced"})

    return {
        "source": image_url,
        "layout": {
            "type": "hero-section",
            "structure": "single-column",
            "elements": [
                {"type": "heading", "text": "Welcome to Our Site", "level": 1},
                {"type": "paragraph", "text": "This is a sample description"},
                {"type": "button", "text": "Get Started", "style": "primary"},
            ],
        },
        "styling": {
            "colors": ["#2563eb", "#ffffff", "#1e293b"],
            "typography": {"heading": "sans-serif", "body": "sans-serif"},
            "spacing": "standard",
        },
        "components": components,
    }


def _element_texts(analysis: Dict[str, Any]) -> List[str]:
    elements = (analysis.get("layout") or {}).get("elements") or []
    texts = []
    for i, fallback in enumerate(FALLBACK_TEXTS):
        text = elements[i].get("text") if i < len(elements) else None
        texts.append(text or fallback)
    return texts


def missing_components(analysis: Dict[str, Any], baseline: Iterable[str]) -> List[str]:
    """Components above basic complexity that the baseline library lacks."""
    available = set(baseline)
    return [
        c["name"]
        for c in analysis.get("components", [])
        if c.get("complexity", "basic") != "basic" and c["name"] not in available
    ]


def generate_html(analysis: Dict[str, Any], prompt: Optional[str] = None) -> GeneratedCode:
    heading, paragraph, button = (html.escape(t) for t in _element_texts(analysis))
    document = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Generated Design</title>
  <style>
    * {{
      margin: 0;
      padding: 0;
      box-sizing: border-box;
    }}
    body {{
      font-family: system-ui, -apple-system, sans-serif;
      line-height: 1.6;
    }}
    .hero {{
      min-height: 100vh;
      display: flex;
      flex-direction: column;
      justify-content: center;
      align-items: center;
      text-align: center;
      padding: 2rem;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      color: white;
    }}
    .hero h1 {{
      font-size: 3rem;
      margin-bottom: 1rem;
      font-weight: 700;
    }}
    .hero p {{
      font-size: 1.25rem;
      margin-bottom: 2rem;
      max-width: 600px;
    }}
    .btn {{
      display: inline-block;
      padding: 1rem 2rem;
      background: white;
      color: #667eea;
      text-decoration: none;
      border-radius: 0.5rem;
      font-weight: 600;
      transition: transform 0.2s;
    }}
    .btn:hover {{
      transform: translateY(-2px);
    }}
  </style>
</head>
<body>
  <section class="hero">
    <h1>{heading}</h1>
    <p>{paragraph}</p>
    <a href="#" class="btn">{button}</a>
  </section>
</body>
</html>"""

    # Plain HTML never needs a companion plugin
    return GeneratedCode(code={"html": document, "css": "", "javascript": ""})


def generate_divi(analysis: Dict[str, Any], prompt: Optional[str] = None, baseline: Optional[Iterable[str]] = None) -> GeneratedCode:
    heading, paragraph, button = _element_texts(analysis)
    modules: List[Dict[str, Any]] = [
        {"type": "et_pb_text", "content": f"<h1>{html.escape(heading)}</h1>"},
        {"type": "et_pb_text", "content": f"<p>{html.escape(paragraph)}</p>"},
        {"type": "et_pb_button", "text": button, "url": "#"},
    ]
    missing = missing_components(analysis, DEFAULT_BASELINE[ConversionType.DIVI] if baseline is None else baseline)
    for name in missing:
        modules.append({"type": f"custom_{_php_slug(name)}", "component": name})

    layout = {
        "sections": [
            {
                "type": "et_pb_section",
                "background": "gradient",
                "columns": [{"type": "et_pb_column", "modules": modules}],
            }
        ]
    }
    companion = divi_companion_plugin(missing) if missing else None
    return GeneratedCode(code=layout, companion_plugin=companion, missing_components=missing)


def generate_elementor(analysis: Dict[str, Any], prompt: Optional[str] = None, baseline: Optional[Iterable[str]] = None) -> GeneratedCode:
    heading, paragraph, button = _element_texts(analysis)
    widgets: List[Dict[str, Any]] = [
        {"type": "heading", "settings": {"title": heading, "size": "xxl", "align": "center"}},
        {"type": "text-editor", "settings": {"editor": paragraph, "align": "center"}},
        {"type": "button", "settings": {"text": button, "link": {"url": "#"}, "align": "center"}},
    ]
    missing = missing_components(analysis, DEFAULT_BASELINE[ConversionType.ELEMENTOR] if baseline is None else baseline)
    for name in missing:
        widgets.append({"type": f"custom-{name}", "settings": {}})

    layout = {
        "sections": [
            {
                "type": "section",
                "settings": {
                    "background_background": "gradient",
                    "background_color": "#667eea",
                    "background_color_b": "#764ba2",
                },
                "columns": [{"type": "column", "widgets": widgets}],
            }
        ]
    }
    companion = elementor_companion_plugin(missing) if missing else None
    return GeneratedCode(code=layout, companion_plugin=companion, missing_components=missing)


def generate_code(
    analysis: Dict[str, Any],
    conversion_type: str,
    prompt: Optional[str] = None,
    baseline: Optional[Iterable[str]] = None,
) -> GeneratedCode:
    """
    Generate code for a conversion type.

    Args:
        analysis: Output of analyze_design
        conversion_type: 'html', 'divi' or 'elementor'
        prompt: Optional user instructions
        baseline: Component names the builder ships; defaults per builder

    Raises:
        CodegenError: Unknown conversion type
    """
    if conversion_type == ConversionType.HTML.value:
        return generate_html(analysis, prompt)
    elif conversion_type == ConversionType.DIVI.value:
        return generate_divi(analysis, prompt, baseline)
    elif conversion_type == ConversionType.ELEMENTOR.value:
        return generate_elementor(analysis, prompt, baseline)

    raise CodegenError("Invalid conversion type")


def _php_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _php_class(name: str) -> str:
    return "".join(part.capitalize() for part in _php_slug(name).split("_"))


def divi_companion_plugin(components: List[str]) -> Dict[str, Any]:
    files = {}
    for name in components:
        files[f"modules/{_php_slug(name)}.php"] = (
            "<?php\n"
            f"// Custom Divi Module: {name}\n"
            f"class Custom_Divi_{_php_class(name)} extends ET_Builder_Module {{}}\n"
        )
    return {
        "name": "Custom Divi Module",
        "description": "Auto-generated custom Divi module for your design",
        "components": components,
        "files": files,
    }


def elementor_companion_plugin(components: List[str]) -> Dict[str, Any]:
    files = {}
    for name in components:
        files[f"widgets/{_php_slug(name)}.php"] = (
            "<?php\n"
            f"// Custom Elementor Widget: {name}\n"
            f"class Custom_Elementor_{_php_class(name)} extends \\Elementor\\Widget_Base {{}}\n"
        )
    return {
        "name": "Custom Elementor Widget",
        "description": "Auto-generated custom Elementor widget for your design",
        "components": components,
        "files": files,
    }


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def export_filename(name: str, conversion_type: str) -> str:
    """File name for downloading a conversion's generated code."""
    extension = "html" if conversion_type == ConversionType.HTML.value else "json"
    return f"{slugify(name) or 'design'}-{conversion_type}.{extension}"


def companion_filename(name: str) -> str:
    return f"companion-plugin-{slugify(name) or 'design'}.json"
