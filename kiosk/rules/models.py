"""
Kiosk configuration models.

Validated shape of ``kiosk.yaml``. Everything here is plain data; callables
(authentication overrides, preview handlers, inherit-access resolvers) are
injected separately through ``KioskHooks``.
"""

from typing import Literal

from pydantic import BaseModel, Field

BillingServer = Literal["production", "sandbox"]


class BillingRules(BaseModel):
    access_token: str = ""
    organization_id: str = ""
    organization_slug: str = ""
    server: BillingServer = "sandbox"


class GroupRules(BaseModel):
    """A course-like collection: one index entry carries the product for its children."""

    index: str
    child_collection: str


class CollectionRules(BaseModel):
    include: str
    name: str | None = None
    loader_collection: str | None = None
    paywall_template: str | None = None
    downloadable_template: str | None = None
    group: GroupRules | None = None

    @property
    def source_collection(self) -> str:
        """Collection name used when asking the content loader for entries."""
        return self.loader_collection or self.name or ""


class AccessCookieRules(BaseModel):
    secret: str = ""
    ttl_seconds: int = Field(default=3600, gt=0)
    max_entries: int = Field(default=20, ge=1)


class SessionRules(BaseModel):
    ttl_seconds: int = Field(default=60 * 60 * 24 * 30, gt=0)


class LocalePath(BaseModel):
    path: str
    codes: list[str] = Field(min_length=1)


class I18nRules(BaseModel):
    locales: list[str | LocalePath] = Field(default_factory=list)
    default_locale: str
    prefix_default_locale: bool = False


class KioskRules(BaseModel):
    billing: BillingRules = Field(default_factory=BillingRules)
    site_url: str = "http://localhost:8000"
    content_root: str = "src/content"
    collections: list[CollectionRules] = Field(default_factory=list)
    product_name_template: str | None = None
    signin_page_path: str = "/kiosk/signin"
    access_cookie: AccessCookieRules = Field(default_factory=AccessCookieRules)
    session: SessionRules = Field(default_factory=SessionRules)
    i18n: I18nRules | None = None

    def collection_by_name(self, name: str) -> CollectionRules | None:
        for collection in self.collections:
            if collection.name == name:
                return collection
        return None
