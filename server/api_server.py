"""FastAPI application entry point of the condominium document assistant."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.EmbedModelHandle import EmbedModelHandle
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.parse.ParseClientManager import ParseClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.store.DocumentStoreManager import DocumentStoreManager
from services.answer.AnswerService import AnswerService
from services.answer.RequestLimiter import RequestLimiter
from services.ingestion.IngestionService import IngestionService
from server.routers.AskRouter import router as ask_router
from server.routers.DocumentRouter import router as document_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    parse_client = ParseClientManager(helper_config=app.state.helper_config).get_client()
    document_store = DocumentStoreManager(helper_config=app.state.helper_config).get_store()

    # the embedding client is booted lazily by its handle
    clients: list[ClientInterface] = [rag_client, llm_client]
    if parse_client is not None:
        clients.append(parse_client)
    if isinstance(document_store, ClientInterface):
        clients.append(document_store)

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    embed_handle = EmbedModelHandle(helper_config=app.state.helper_config, client=embed_client)
    app.state.ingestion_service = IngestionService(
        helper_config=app.state.helper_config,
        rag_client=rag_client,
        embed_handle=embed_handle,
        document_store=document_store,
        parse_client=parse_client,
    )
    app.state.answer_service = AnswerService(
        helper_config=app.state.helper_config,
        rag_client=rag_client,
        embed_handle=embed_handle,
        llm_client=llm_client,
    )
    app.state.request_limiter = RequestLimiter(helper_config=app.state.helper_config, document_store=document_store)

    await check_connections(rag_client)
    vector_size = await app.state.ingestion_service.ensure_collection()
    logging.info("Collection '%s' ready (dimension %d).", rag_client.get_collection_name(), vector_size, color="green")

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    await embed_handle.close()
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="condo_rag",
    description=(
        "Grounded question answering over condominium documents (regulations, minutes). "
        "Documents are chunked, embedded and indexed per tenant via POST /documents; "
        "residents ask questions via POST /ask."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ask_router)
app.include_router(document_router)


@app.get("/health", tags=["health"])
async def health() -> dict:
    return {"status": "ok", "version": app_version}


async def check_connections(rag_client: ClientInterface) -> None:
    """Check the vector index on startup. Answers cannot be served without it.

    Raises:
        ClientResponseError: If the vector index answers with an error.
        ClientTransportError: If it cannot be reached at all.
    """
    await rag_client.do_healthcheck()
    logging.info("Vector index '%s' is reachable.", rag_client.get_engine_name())


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting condo_rag API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", os.getcwd()),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
