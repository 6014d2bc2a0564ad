from services.answer.prompts import CONTEXT_SEPARATOR, NOT_FOUND_ANSWER, build_system_prompt, format_context_block
from shared.clients.embed.EmbedModelHandle import EmbedModelHandle
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import SearchHit
from shared.helper.HelperConfig import HelperConfig
from shared.models.answer import AnswerResponse, SourceItem
from shared.models.config import AnswerSettings


class InvalidQueryError(ValueError):
    """The question or its tenant id cannot be answered as asked."""


class AnswerService:
    """Handles grounded questions: embed -> tenant search -> context -> generate."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_handle: EmbedModelHandle,
        llm_client: LLMClientInterface,
        settings: AnswerSettings | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag = rag_client
        self._embed = embed_handle
        self._llm = llm_client
        self._settings = settings or AnswerSettings.from_config(helper_config)

    ##########################################
    ############### CORE #####################
    ##########################################

    async def answer(self, query: str, tenant_id: str, user_name: str | None = None) -> AnswerResponse:
        """Answer a question from the tenant's own documents only.

        When no chunk of the tenant reaches the score threshold the fixed
        "not found" answer is returned and the generator is never called.
        Otherwise the generator's text is returned as is.

        Args:
            query (str): The user's question.
            tenant_id (str): The condominium the user belongs to.
            user_name (str | None): Display name the answer may address.

        Returns:
            AnswerResponse: Answer text, the sources used, and whether anything was found.

        Raises:
            InvalidQueryError: If the query is empty or too long, or tenant_id is missing.
            RateLimitError: If the generator is rate limited.
            ClientError: On any other provider failure.
        """
        query = self.validate_request(query, tenant_id)
        self.logging.info("Answering for tenant '%s': query='%s'", tenant_id, query[:80])

        vector = await self._embed.embed_text(query)
        hits = await self._rag.do_search(
            vector,
            tenant_id=tenant_id,
            limit=self._settings.top_k,
            score_threshold=self._settings.score_threshold,
        )
        # qdrant already applies the threshold; keep the guarantee for other engines
        hits = [hit for hit in hits if hit.score >= self._settings.score_threshold]
        if not hits:
            self.logging.info("No chunk of tenant '%s' above threshold %.2f; answering not found.", tenant_id, self._settings.score_threshold)
            return AnswerResponse(answer=NOT_FOUND_ANSWER, sources=[], found=False)

        self.logging.debug("Top hit: '%s' (score=%.3f), %d hits total.", hits[0].payload.title, hits[0].score, len(hits))
        context = self.build_context(hits)
        text = await self._llm.do_grounded_chat(build_system_prompt(context, user_name), query)
        self.logging.info("Answer generated for tenant '%s' (%d chars, %d sources).", tenant_id, len(text), len(hits))
        return AnswerResponse(answer=text, sources=self.build_sources(hits), found=True)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def validate_request(self, query: str, tenant_id: str) -> str:
        """Return the trimmed query, or raise InvalidQueryError."""
        if not tenant_id or not tenant_id.strip():
            raise InvalidQueryError("tenant_id is mandatory.")
        return self.validate_query(query)

    def validate_query(self, query: str) -> str:
        stripped = (query or "").strip()
        if not stripped or len(stripped) > self._settings.max_query_chars:
            raise InvalidQueryError(f"Query must have between 1 and {self._settings.max_query_chars} characters.")
        return stripped

    @staticmethod
    def build_context(hits: list[SearchHit]) -> str:
        return CONTEXT_SEPARATOR.join(
            format_context_block(i, hit.payload.title, hit.payload.content) for i, hit in enumerate(hits, start=1)
        )

    def build_sources(self, hits: list[SearchHit]) -> list[SourceItem]:
        limit = self._settings.excerpt_chars
        return [
            SourceItem(
                title=hit.payload.title,
                score=hit.score,
                excerpt=hit.payload.content[:limit] + "...",
                doc_id=hit.payload.doc_id,
                chunk_number=hit.payload.chunk_number,
            )
            for hit in hits
        ]
