"""Site content access for the indexer and the chat fallbacks.

The host CMS implements `SiteContent`; `InMemorySiteContent` is the
implementation used when the content is pushed to the service (and in tests).
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .models.site_content import PRODUCT_POST_TYPE, Post, Product, SiteInfo, Term
from .rag.chunker import strip_markup
from .utils.text import fold

logger = logging.getLogger(__name__)

EXCERPT_WORDS = 55


class SiteContent(ABC):
    """Read-only view of the site's content."""

    @abstractmethod
    def get_post(self, post_id: int) -> Optional[Post]:
        raise NotImplementedError

    @abstractmethod
    def get_product(self, product_id: int) -> Optional[Product]:
        raise NotImplementedError

    @abstractmethod
    def get_term(self, term_id: int, taxonomy: str) -> Optional[Term]:
        raise NotImplementedError

    @abstractmethod
    def get_site_info(self) -> SiteInfo:
        raise NotImplementedError

    @abstractmethod
    def public_post_types(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def public_taxonomies(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def published_post_ids(self, post_type: str, page: int, per_page: int) -> List[int]:
        """One page (1-based) of published post ids of a post type."""
        raise NotImplementedError

    @abstractmethod
    def get_terms(self, taxonomy: str) -> List[Term]:
        raise NotImplementedError

    @abstractmethod
    def search_products(self, keyword: str, limit: int = 5) -> List[Product]:
        raise NotImplementedError

    @abstractmethod
    def commerce_enabled(self) -> bool:
        """True when the site sells products."""
        raise NotImplementedError


class InMemorySiteContent(SiteContent):
    """Dictionary-backed SiteContent."""

    def __init__(
        self,
        site_info: Optional[SiteInfo] = None,
        posts: Iterable[Post] = (),
        products: Iterable[Product] = (),
        terms: Iterable[Term] = (),
        public_post_types: Optional[List[str]] = None,
        public_taxonomies: Optional[List[str]] = None,
    ):
        self.site_info = site_info or SiteInfo()
        self.posts: Dict[int, Post] = {}
        self.products: Dict[int, Product] = {}
        self.terms: Dict[Tuple[str, int], Term] = {}
        self._post_types = public_post_types
        self._taxonomies = public_taxonomies
        for post in posts:
            self.add_post(post)
        for product in products:
            self.add_product(product)
        for term in terms:
            self.add_term(term)

    def add_post(self, post: Post) -> None:
        self.posts[post.id] = post

    def add_product(self, product: Product, status: str = "publish") -> None:
        self.products[product.id] = product
        existing = self.posts.get(product.id)
        if existing is None or existing.post_type == PRODUCT_POST_TYPE:
            self.posts[product.id] = Post(
                id=product.id,
                title=product.name,
                content=product.description,
                excerpt=product.short_description,
                post_type=PRODUCT_POST_TYPE,
                status=status,
                url=product.url,
            )

    def add_term(self, term: Term) -> None:
        self.terms[(term.taxonomy, term.id)] = term

    def remove_post(self, post_id: int) -> None:
        self.posts.pop(post_id, None)
        self.products.pop(post_id, None)

    def get_post(self, post_id: int) -> Optional[Post]:
        return self.posts.get(post_id)

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.products.get(product_id)

    def get_term(self, term_id: int, taxonomy: str) -> Optional[Term]:
        return self.terms.get((taxonomy, term_id))

    def get_site_info(self) -> SiteInfo:
        return self.site_info

    def public_post_types(self) -> List[str]:
        if self._post_types is not None:
            return list(self._post_types)
        types = ["post", "page"]
        for post in self.posts.values():
            if post.post_type not in types and not post.is_revision:
                types.append(post.post_type)
        return types

    def public_taxonomies(self) -> List[str]:
        if self._taxonomies is not None:
            return list(self._taxonomies)
        taxonomies = []
        for taxonomy, _ in self.terms:
            if taxonomy not in taxonomies:
                taxonomies.append(taxonomy)
        return taxonomies

    def published_post_ids(self, post_type: str, page: int, per_page: int) -> List[int]:
        ids = sorted(
            p.id for p in self.posts.values()
            if p.post_type == post_type and p.is_published and not p.is_revision and not p.is_autosave
        )
        start = (max(page, 1) - 1) * per_page
        return ids[start:start + per_page]

    def get_terms(self, taxonomy: str) -> List[Term]:
        return [t for (tax, _), t in sorted(self.terms.items()) if tax == taxonomy]

    def search_products(self, keyword: str, limit: int = 5) -> List[Product]:
        keyword = fold(keyword).strip()
        if not keyword:
            return []
        matches = []
        for product in self.products.values():
            post = self.posts.get(product.id)
            if post is not None and not post.is_published:
                continue
            haystack = fold(" ".join([product.name, product.sku, strip_markup(product.short_description),
                                 strip_markup(product.description)]))
            if keyword in haystack:
                matches.append(product)
        return matches[:limit]

    def commerce_enabled(self) -> bool:
        return bool(self.products)


def make_excerpt(post: Post, words: int = EXCERPT_WORDS) -> str:
    """The post excerpt, or the first `words` words of its content."""
    text = strip_markup(post.excerpt) or strip_markup(post.content)
    tokens = text.split()
    if len(tokens) <= words:
        return " ".join(tokens)
    return " ".join(tokens[:words]) + "..."


def build_site_snapshot(site: SiteContent, max_chars: int = 6000, per_type_limit: int = 50) -> str:
    """Plain-text summary of the site used when retrieval has nothing.

    One paragraph for the site itself, then one per published post:
    title line, URL line, excerpt line.
    """
    info = site.get_site_info()
    paragraphs = []
    header = " - ".join(part for part in (info.name, info.description) if part)
    if header:
        paragraphs.append(header)

    for post_type in site.public_post_types():
        for post_id in site.published_post_ids(post_type, 1, per_type_limit):
            post = site.get_post(post_id)
            if post is None:
                continue
            lines = [post.title]
            if post.url:
                lines.append(post.url)
            excerpt = make_excerpt(post)
            if excerpt:
                lines.append(excerpt)
            paragraphs.append("\n".join(lines))

    snapshot = ""
    for paragraph in paragraphs:
        candidate = f"{snapshot}\n\n{paragraph}" if snapshot else paragraph
        if len(candidate) > max_chars:
            break
        snapshot = candidate
    return snapshot


class SiteSnapshotCache:
    """Caches `build_site_snapshot` output for `ttl` seconds."""

    def __init__(self, site: SiteContent, ttl: int = 3600, max_chars: int = 6000,
                 clock: Callable[[], float] = time.time):
        self.site = site
        self.ttl = ttl
        self.max_chars = max_chars
        self.clock = clock
        self._snapshot: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get(self) -> str:
        with self._lock:
            now = self.clock()
            if self._snapshot is None or self._expires_at <= now:
                self._snapshot = build_site_snapshot(self.site, self.max_chars)
                self._expires_at = now + self.ttl
                logger.info(f"[SITE_SNAPSHOT] Rebuilt site snapshot ({len(self._snapshot):,} chars)")
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None
