"""Template rendering module for thothixctl.
thothixctl 템플릿 렌더링 모듈.

Uses Jinja2 for the Vault policy documents written during bootstrap.
"""

from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined

# Template directory path / 템플릿 디렉토리 경로
TEMPLATES_DIR = Path(__file__).parent / "templates"


def get_jinja_env() -> Environment:
    """Get Jinja2 environment with configured loaders.
    설정된 로더로 Jinja2 환경 반환.
    """
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def render_template(template_name: str, context: Dict[str, Any]) -> str:
    """Render a template with the given context.
    주어진 컨텍스트로 템플릿 렌더링.

    Args:
        template_name: Template file name (e.g., "policy.hcl.j2")
        context: Dictionary of variables to pass to template

    Returns:
        Rendered template string
    """
    env = get_jinja_env()
    template = env.get_template(template_name)
    return template.render(**context)
