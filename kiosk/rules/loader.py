"""
Load kiosk.yaml, apply environment overrides, and resolve derived fields.

Fail fast: a missing signing secret or a collection whose name cannot be
inferred halts startup instead of surfacing on the first request.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from kiosk.core.errors import ConfigurationError
from kiosk.rules.models import CollectionRules, KioskRules

DEFAULT_RULES_PATH = "kiosk.yaml"
RULES_PATH_ENV = "KIOSK_RULES_PATH"

_COLLECTION_FROM_INCLUDE = re.compile(r"src/content/([^/*]+)/?")


def _strip_markdown_fences(content: str) -> str:
    """Return the first ```yaml block if present, else the whole content."""
    yaml_lines = []
    in_block = False
    found_block = False

    for line in content.splitlines():
        s_line = line.strip()
        if s_line.startswith("```yaml"):
            in_block = True
            found_block = True
            continue
        if in_block and s_line.startswith("```"):
            break
        if in_block:
            yaml_lines.append(line)

    return "\n".join(yaml_lines) if found_block else content


def load_rules(path: Path) -> KioskRules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if the YAML or the schema is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    content = _strip_markdown_fences(path.read_text())

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        return KioskRules.model_validate(data or {})
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


def apply_env_overrides(
    rules: KioskRules, environ: Mapping[str, str] | None = None
) -> KioskRules:
    """Overlay KIOSK_* environment variables (secrets usually live there)."""
    env = os.environ if environ is None else environ

    billing_update: dict[str, str] = {}
    if env.get("KIOSK_BILLING_ACCESS_TOKEN"):
        billing_update["access_token"] = env["KIOSK_BILLING_ACCESS_TOKEN"]
    if env.get("KIOSK_BILLING_ORGANIZATION_ID"):
        billing_update["organization_id"] = env["KIOSK_BILLING_ORGANIZATION_ID"]
    if env.get("KIOSK_BILLING_SERVER"):
        server = env["KIOSK_BILLING_SERVER"]
        if server not in ("production", "sandbox"):
            raise ConfigurationError(
                f'KIOSK_BILLING_SERVER must be "production" or "sandbox", got "{server}"'
            )
        billing_update["server"] = server

    update: dict[str, object] = {}
    if billing_update:
        update["billing"] = rules.billing.model_copy(update=billing_update)
    if env.get("KIOSK_ACCESS_COOKIE_SECRET"):
        update["access_cookie"] = rules.access_cookie.model_copy(
            update={"secret": env["KIOSK_ACCESS_COOKIE_SECRET"]}
        )
    if env.get("KIOSK_SITE_URL"):
        update["site_url"] = env["KIOSK_SITE_URL"]

    return rules.model_copy(update=update) if update else rules


def infer_collection_name(include: str | None) -> str | None:
    """
    Infer a collection name from an include glob.

    "src/content/blog/**/*.md" -> "blog". Falls back to the segment after the
    first "content" directory.
    """
    if not include:
        return None

    cleaned = include.replace("\\", "/")
    match = _COLLECTION_FROM_INCLUDE.search(cleaned)
    if match:
        return match.group(1)

    segments = cleaned.split("/")
    if "content" in segments:
        content_index = segments.index("content")
        if content_index + 1 < len(segments):
            candidate = segments[content_index + 1]
            if candidate and "*" not in candidate:
                return candidate

    return None


def _resolve_collection(collection: CollectionRules) -> CollectionRules:
    if collection.name:
        return collection

    name = infer_collection_name(collection.include)
    if not name:
        raise ConfigurationError(
            f'Collection name could not be inferred from include pattern: "{collection.include}". '
            'Use a path like "src/content/{collection}/**/*.md" or set "name" explicitly.'
        )
    return collection.model_copy(update={"name": name})


def resolve_rules(rules: KioskRules) -> KioskRules:
    """Fill in inferred collection names and normalise paths."""
    collections = [_resolve_collection(c) for c in rules.collections]
    return rules.model_copy(
        update={
            "collections": collections,
            "site_url": rules.site_url.rstrip("/"),
        }
    )


def validate_rules(rules: KioskRules) -> None:
    """Raise ConfigurationError for settings that would break requests."""
    if not rules.access_cookie.secret:
        raise ConfigurationError(
            "Access cookie signing secret is required "
            "(set access_cookie.secret or KIOSK_ACCESS_COOKIE_SECRET)."
        )

    seen: set[str] = set()
    for collection in rules.collections:
        name = collection.name or ""
        if name in seen:
            raise ConfigurationError(f'Collection "{name}" is configured twice.')
        seen.add(name)


def load_kiosk_rules(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> KioskRules:
    """Load, override, resolve and validate in one step."""
    env = os.environ if environ is None else environ
    rules_path = Path(path or env.get(RULES_PATH_ENV) or DEFAULT_RULES_PATH)

    rules = resolve_rules(apply_env_overrides(load_rules(rules_path), env))
    validate_rules(rules)
    return rules
