"""Maintenance runner entry point.

Collection-level operations that must not run while the API is serving
ingestions or queries (clear and reindex drop the whole collection).

Usage:
    python -m services.maintenance.maintenance_runner setup
    python -m services.maintenance.maintenance_runner clear
    python -m services.maintenance.maintenance_runner reindex [--allow-partial]
    python -m services.maintenance.maintenance_runner migrate [--tenant TENANT_ID]
"""

import argparse
import asyncio
import sys

from shared.clients.ClientErrors import ClientError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.EmbedModelHandle import EmbedModelHandle
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.store.DocumentStoreManager import DocumentStoreManager
from services.ingestion.IngestionService import IngestionService
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.document import IngestionStatus


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Vector index maintenance for the condominium document assistant.")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("setup", help="Create the collection for the configured embedding model.")
    commands.add_parser("clear", help="Drop and recreate the collection (removes every tenant's vectors).")
    reindex = commands.add_parser("reindex", help="Re-embed every point and rebuild the collection.")
    reindex.add_argument("--allow-partial", action="store_true", help="Rebuild even if some points fail to re-embed.")
    migrate = commands.add_parser("migrate", help="Ingest the documents held by the document store.")
    migrate.add_argument("--tenant", default=None, help="Only migrate this tenant's documents.")
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Run one maintenance command. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    rag_client = RAGClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()
    document_store = DocumentStoreManager(helper_config=config).get_store()
    embed_handle = EmbedModelHandle(helper_config=config, client=embed_client)

    try:
        # the vector index is required for every command, abort if it is not reachable
        try:
            await rag_client.boot()
            await rag_client.do_healthcheck()
        except ClientError as e:
            logger.error("Error booting RAG client %s: %s. Aborting.", rag_client.get_engine_name(), e)
            return 1
        if isinstance(document_store, ClientInterface):
            await document_store.boot()

        service = IngestionService(
            helper_config=config,
            rag_client=rag_client,
            embed_handle=embed_handle,
            document_store=document_store,
        )

        if args.command == "setup":
            size = await service.setup()
            logger.info("Collection '%s' ready (dimension %d).", rag_client.get_collection_name(), size, color="green")
        elif args.command == "clear":
            size = await service.clear()
            logger.info("Collection '%s' cleared and recreated (dimension %d).", rag_client.get_collection_name(), size, color="green")
        elif args.command == "reindex":
            report = await service.reindex(allow_partial=args.allow_partial)
            logger.info(
                "Reindexed %d of %d points (%d errors, %d failed batches).",
                report.points_reembedded, report.points_found, report.errors, report.failed_batches, color="green",
            )
            if report.errors or report.failed_batches:
                return 2
        elif args.command == "migrate":
            results = await service.migrate(tenant_id=args.tenant)
            failed = [r for r in results if r.status != IngestionStatus.DONE]
            for result in failed:
                logger.error("Document id=%s of tenant '%s' failed: %s", result.document_id, result.tenant_id, result.error)
            if failed:
                return 2
        return 0
    except ClientError as e:
        logger.error("Maintenance command '%s' failed: %s", args.command, e)
        return 1
    finally:
        await embed_handle.close()
        await rag_client.close()
        if isinstance(document_store, ClientInterface):
            await document_store.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
