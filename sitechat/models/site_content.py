"""Site content objects handed to the indexer by the host CMS."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

PUBLISHED = "publish"
PRODUCT_POST_TYPE = "product"


@dataclass
class Post:
    """A post, page or any other post-type entry.

    Attributes:
        id: Post id.
        title: Post title.
        content: Raw body (may contain HTML markup).
        excerpt: Short summary; derived from the content when empty.
        post_type: 'post', 'page', 'product', ...
        status: Publication status ('publish', 'draft', 'private', ...).
        url: Permalink.
        is_revision: True for revision entries.
        is_autosave: True for autosave entries.
    """
    id: int
    title: str
    content: str = ""
    excerpt: str = ""
    post_type: str = "post"
    status: str = PUBLISHED
    url: str = ""
    is_revision: bool = False
    is_autosave: bool = False

    @property
    def is_published(self) -> bool:
        return self.status == PUBLISHED


@dataclass
class ProductVariation:
    attributes: Dict[str, str]
    price: str = ""


@dataclass
class Product:
    id: int
    name: str
    description: str = ""
    short_description: str = ""
    price: str = ""
    currency: str = ""
    sku: str = ""
    stock_quantity: Optional[int] = None
    stock_status: str = "instock"
    url: str = ""
    variations: List[ProductVariation] = field(default_factory=list)


@dataclass
class Term:
    id: int
    taxonomy: str
    name: str
    description: str = ""
    taxonomy_label: str = ""


@dataclass
class SiteInfo:
    name: str = ""
    description: str = ""
    front_page_title: str = ""
    url: str = ""
