"""User-facing texts and the grounding prompt of the answer service (pt-BR)."""

NOT_FOUND_ANSWER = (
    "Não encontrei informações sobre isso nos documentos do condomínio. "
    "Você pode reformular a pergunta ou verificar se os documentos relevantes foram adicionados na Biblioteca."
)
NOT_FOUND_SENTENCE = "Não encontrei essa informação nos documentos disponíveis"
RATE_LIMIT_ANSWER = "Muitas perguntas em pouco tempo. Por favor, aguarde alguns instantes e tente novamente."
REQUEST_LIMIT_ANSWER = "Limite de perguntas atingido: no máximo {limit} por hora. Tente novamente em alguns minutos."
GENERIC_ERROR_ANSWER = "Não foi possível gerar uma resposta agora. Por favor, tente novamente."

CONTEXT_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT_TEMPLATE = """Você é a Norma, assistente virtual de gestão condominial.

**INSTRUÇÕES CRÍTICAS:**
1. Responda APENAS com base no CONTEXTO fornecido abaixo
2. Se a informação NÃO estiver no contexto, diga: "{not_found}"
3. Seja concisa e objetiva (máximo 150 palavras)
4. Use bullets quando listar múltiplos itens
5. Cite a fonte quando possível (ex: "Segundo o Regimento Interno...")
6. Responda no idioma e no tom da pergunta, de forma profissional mas acessível
{greeting}
**CONTEXTO:**
{context}

**IMPORTANTE:** Não invente informações. Se não souber, admita."""

GREETING_TEMPLATE = "7. Trate o usuário pelo nome: {user_name}\n"


def format_context_block(index: int, title: str, content: str) -> str:
    return f"[Fonte {index}: {title or 'Documento'}]\n{content}"


def build_system_prompt(context: str, user_name: str | None = None) -> str:
    """Fill the grounding contract with the retrieved context and, if known, the user's name."""
    greeting = GREETING_TEMPLATE.format(user_name=user_name.strip()) if user_name and user_name.strip() else ""
    return SYSTEM_PROMPT_TEMPLATE.format(not_found=NOT_FOUND_SENTENCE, greeting=greeting, context=context)
