"""
Deterministic replies used when no chat provider is configured or all failed.

Greetings and farewells get canned answers; otherwise the context paragraph
sharing the most meaningful words with the message is returned, or matching
products on a shop site, or an honest "nothing found" reply.
"""
import logging
from typing import List, Optional

from .models.site_content import Product
from .utils.text import meaningful_words, tokenize

logger = logging.getLogger(__name__)

GREETING_REPLY = "¡Hola! Soy el asistente del sitio. ¿En qué puedo ayudarte?"
FAREWELL_REPLY = "¡Con gusto! Si tienes otra pregunta, aquí estaré."
NO_INFORMATION_REPLY = (
    "No encontré información sobre eso en el sitio. "
    "¿Podrías darme más detalles o reformular tu pregunta?"
)

GREETINGS = ("hola", "buenos dias", "buenas tardes", "buenas noches", "buenas", "saludos",
             "hello", "hi", "hey", "good morning", "good afternoon")
FAREWELLS = ("adios", "hasta luego", "hasta pronto", "chao", "chau", "nos vemos", "gracias",
             "muchas gracias", "bye", "goodbye", "thanks", "thank you")

COMMERCE_WORDS = {"precio", "precios", "comprar", "compra", "producto", "productos", "stock",
                  "tienda", "cuesta", "cuanto", "venden", "price", "prices", "buy", "product",
                  "products", "shop", "cost"}

STOCK_LABELS = {"instock": "disponible", "outofstock": "agotado", "onbackorder": "bajo pedido"}

MAX_EXCERPT_CHARS = 300
MAX_PRODUCTS = 5


def _matches_phrase(folded: str, phrases) -> bool:
    return any(folded == p or folded.startswith(p + " ") for p in phrases)


class BasicResponder:
    """Keyword-overlap responder."""

    def __init__(self, site=None):
        self.site = site

    def respond(self, message: str, context: str = "") -> str:
        tokens = tokenize(message)
        folded = " ".join(tokens)
        if len(tokens) <= 4:
            if _matches_phrase(folded, FAREWELLS):
                return FAREWELL_REPLY
            if _matches_phrase(folded, GREETINGS):
                return GREETING_REPLY

        words = meaningful_words(message)
        commerce_intent = bool(COMMERCE_WORDS.intersection(tokens))

        if commerce_intent:
            reply = self._product_reply(words)
            if reply:
                return reply

        reply = self._paragraph_reply(words, context)
        if reply:
            return reply

        if not commerce_intent:
            reply = self._product_reply(words)
            if reply:
                return reply

        return NO_INFORMATION_REPLY

    def _paragraph_reply(self, words: List[str], context: str) -> Optional[str]:
        if not words or not context:
            return None
        wanted = set(words)
        best_score = 0
        best = None
        for paragraph in context.split("\n\n"):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            score = len(wanted.intersection(meaningful_words(paragraph)))
            if score > best_score:
                best_score = score
                best = paragraph
        if best is None:
            return None

        lines = best.splitlines()
        title = lines[0].strip()
        excerpt = " ".join(line.strip() for line in lines[1:]).strip()
        if not excerpt and len(title) > MAX_EXCERPT_CHARS:
            title, excerpt = "", title
        if len(excerpt) > MAX_EXCERPT_CHARS:
            excerpt = excerpt[:MAX_EXCERPT_CHARS].rsplit(" ", 1)[0] + "..."
        logger.info(f"[FALLBACK] Best paragraph scored {best_score}: {title[:80]}")
        if title and excerpt:
            return f"**{title}**\n{excerpt}"
        return title or excerpt

    def _product_reply(self, words: List[str]) -> Optional[str]:
        if self.site is None or not words or not self.site.commerce_enabled():
            return None
        products: List[Product] = []
        seen = set()
        for word in words:
            if word in COMMERCE_WORDS:
                continue
            for product in self.site.search_products(word, MAX_PRODUCTS):
                if product.id not in seen:
                    seen.add(product.id)
                    products.append(product)
        if not products:
            return None

        lines = ["Encontré estos productos:"]
        for product in products[:MAX_PRODUCTS]:
            line = f"- **{product.name}**"
            if product.price:
                line += f" - Precio: {product.price} {product.currency}".rstrip()
            if product.stock_quantity is not None:
                line += f" - Stock: {product.stock_quantity}"
            elif product.stock_status:
                line += f" - Stock: {STOCK_LABELS.get(product.stock_status, product.stock_status)}"
            if product.url:
                line += f" - {product.url}"
            lines.append(line)
        return "\n".join(lines)
