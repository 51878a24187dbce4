"""
Chat orchestration: retrieval-grounded answers with a provider fallback chain.

Per message: load the conversation state, rewrite ambiguous follow-ups with
the active topic, retrieve relevant chunks (or the cached site snapshot),
ask Google then OpenAI, fall back to the keyword responder, then update the
conversation state. Provider failures never reach the caller.
"""
import logging
from typing import List, Optional

from .chat_providers import ChatProvider, ProviderUnavailable, build_chat_providers
from .config import ConfigProvider
from .conversation_state import ConversationStateStore
from .fallback_responder import COMMERCE_WORDS, BasicResponder
from .models.records import ConversationState, SearchResult
from .rag import retriever
from .rag.chunk_store import EmbeddingStore
from .rag.embedder import EmbeddingClient, EmbeddingPurpose
from .site_content import SiteContent, SiteSnapshotCache
from .topic_tracker import infer_topic, is_topic_switch, rewrite_query, source_title
from .utils.text import tokenize

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_REPLY = "Mensaje vacío"
TOO_LONG_REPLY = "El mensaje excede los {max_chars} caracteres permitidos."

NO_CONTEXT_REPLY = (
    "No tengo información sobre eso en este sitio. "
    "¿Podrías darme más detalles o reformular tu pregunta?"
)
NO_CONTEXT_TOPIC_REPLY = (
    "No encontré información sobre eso en el sitio. "
    "¿Tu pregunta sigue relacionada con «{topic}»? Si es así, ¿podrías darme más detalles?"
)

SYSTEM_INSTRUCTIONS = """Eres el asistente virtual del sitio web{site_name}.
REGLAS:
1. Responde ÚNICAMENTE con la información del CONTEXTO DEL SITIO. No inventes datos.
2. Si el contexto no contiene información suficiente para responder, dilo claramente y pide al usuario que aclare su pregunta.
3. {link_rule}
4. Nunca enlaces, menciones ni recomiendes contenido de la competencia o de otros sitios web.
5. Responde en el idioma del usuario, de forma breve y clara."""

COMMERCE_LINK_RULE = "La pregunta es sobre productos o compras: incluye el enlace del propio sitio de cada producto que menciones."
NO_LINK_RULE = "No incluyas enlaces en la respuesta."


class InvalidInput(ValueError):
    """Raised for messages rejected before any retrieval work"""
    pass


def validate_message(message: Optional[str], max_chars: int = 1000) -> str:
    """Return the trimmed message or raise InvalidInput."""
    text = (message or "").strip()
    if not text:
        raise InvalidInput(EMPTY_MESSAGE_REPLY)
    if len(text) > max_chars:
        raise InvalidInput(TOO_LONG_REPLY.format(max_chars=max_chars))
    return text


def no_context_reply(topic: str = "") -> str:
    if topic:
        return NO_CONTEXT_TOPIC_REPLY.format(topic=topic)
    return NO_CONTEXT_REPLY


def build_prompt(context: str, state: ConversationState, message: str,
                 site_name: str = "", current_url: Optional[str] = None) -> str:
    """System prompt grounding the answer in `context`."""
    commerce = bool(COMMERCE_WORDS.intersection(tokenize(message)))
    parts = [SYSTEM_INSTRUCTIONS.format(
        site_name=f" {site_name}" if site_name else "",
        link_rule=COMMERCE_LINK_RULE if commerce else NO_LINK_RULE,
    )]
    if state.topic:
        parts.append(f"Tema activo de la conversación: {state.topic}")
    if state.last_question:
        parts.append(f"Pregunta anterior del usuario: {state.last_question}")
    if current_url:
        parts.append(f"El usuario está viendo la página: {current_url}")
    parts.append(f"CONTEXTO DEL SITIO:\n{context}")
    return "\n\n".join(parts)


class ChatOrchestrator:
    """Entry point of the chat pipeline (`process_message`)."""

    def __init__(
        self,
        cfg: ConfigProvider,
        store: EmbeddingStore,
        embedder: EmbeddingClient,
        site: SiteContent,
        state_store: ConversationStateStore,
        chat_providers: Optional[List[ChatProvider]] = None,
        snapshot_cache: Optional[SiteSnapshotCache] = None,
        responder: Optional[BasicResponder] = None,
    ):
        self.config = cfg
        self.store = store
        self.embedder = embedder
        self.site = site
        self.state_store = state_store
        self.chat_providers = chat_providers if chat_providers is not None else build_chat_providers(cfg)
        self.snapshot_cache = snapshot_cache or SiteSnapshotCache(
            site,
            ttl=cfg.get_int("site_snapshot_ttl", 3600),
            max_chars=cfg.get_int("max_context_chars", retriever.MAX_CONTEXT_CHARS),
        )
        self.responder = responder or BasicResponder(site)

    async def process_message(
        self,
        message: str,
        current_post_id: Optional[int] = None,
        current_url: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """Answer one chat message.

        Args:
            message: The user's message.
            current_post_id: Id of the page the user is viewing (boosted in retrieval).
            current_url: URL of the page the user is viewing.
            session_id: Chat session id; empty means stateless.

        Returns:
            The reply text. Never raises for provider failures.
        """
        try:
            message = validate_message(message, self.config.get_int("message_max_chars", 1000))
        except InvalidInput as e:
            return str(e)

        # RewriteQuery
        state = self.state_store.get(session_id)
        if state.topic and is_topic_switch(message):
            logger.info(f"[CHAT] Topic switch requested, dropping topic '{state.topic}'")
            state.topic = ""
        query = rewrite_query(message, state.topic)
        continued = query != message
        if continued:
            logger.info(f"[CHAT] Ambiguous follow-up rewritten with topic: {query[:80]}")

        # Retrieve
        results = await self._retrieve(query, current_post_id)
        context = retriever.format_context(
            results,
            self.config.get_int("max_context_chars", retriever.MAX_CONTEXT_CHARS),
            title_for=lambda r: source_title(r, self.site),
        )
        if not context:
            context = self.snapshot_cache.get()
            if context:
                logger.info("[CHAT] No retrieved chunks, using site snapshot as context")

        if not context:
            logger.info(f"[CHAT] No context found for: {message[:80]}")
            reply = no_context_reply(state.topic)
            self._update_state(session_id, state, message, results, continued)
            return reply

        # BuildPrompt
        prompt = build_prompt(context, state, message, self.site.get_site_info().name, current_url)

        # TryGoogle -> TryOpenAI -> FallbackBasic
        reply = await self._ask_providers(prompt, message)
        if reply is None:
            logger.info("[CHAT] No chat provider answered, using keyword fallback")
            reply = self.responder.respond(message, context)

        self._update_state(session_id, state, message, results, continued)
        return reply

    async def _retrieve(self, query: str, current_post_id: Optional[int]) -> List[SearchResult]:
        if not self.embedder.has_provider():
            return []
        query_embedding = await self.embedder.embed(query, EmbeddingPurpose.QUERY)
        if not query_embedding:
            logger.warning(f"[CHAT] Query embedding failed: {self.embedder.last_error}")
            return []
        results = retriever.search(
            self.store,
            query_embedding,
            current_source_id=current_post_id,
            limit=self.config.get_int("search_limit", retriever.DEFAULT_LIMIT),
            provider=self.embedder.last_provider,
            model=self.embedder.last_model,
        )
        return retriever.filter_relevant(
            results, self.config.get_float("similarity_threshold", retriever.MIN_SIMILARITY)
        )

    async def _ask_providers(self, prompt: str, message: str) -> Optional[str]:
        for provider in self.chat_providers:
            if not provider.is_configured():
                continue
            try:
                reply = await provider.complete(prompt, message)
            except ProviderUnavailable as e:
                logger.warning(f"[CHAT] {e}, trying next provider")
                continue
            logger.info(f"[CHAT] Answered by {provider.name} ({provider.model})")
            return reply
        return None

    def _update_state(self, session_id: Optional[str], state: ConversationState, message: str,
                      results: List[SearchResult], continued: bool) -> None:
        state.last_question = message
        if results and not continued:
            topic = infer_topic(results[0], self.site)
            if topic:
                state.topic = topic
        self.state_store.put(session_id, state, self.config.get_int("conversation_ttl", 1800))
