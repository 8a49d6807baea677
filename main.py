import asyncio
import sys
from db.client import apply_schema, init_db, close_db
from messages import QueueName


async def main(workflow_name: str):
    """Main entry point for running workflows with DB initialization."""
    await init_db()
    try:
        if workflow_name == "init-db":
            await apply_schema()
            print("Schema applied")
        elif workflow_name == "ingest":
            import messages.pipeline as pipeline
            from messages import RunIngestion
            result = await pipeline.handle_run_ingestion(RunIngestion())
            print(result.model_dump_json())
        elif workflow_name == "worker":
            from workflows.worker import run_workers
            await run_workers(list(QueueName.ALL))
        else:
            print(f"Unknown workflow: {workflow_name}")
            sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python main.py <init-db|ingest|worker>")
        sys.exit(1)

    workflow_name = sys.argv[1]
    asyncio.run(main(workflow_name))
