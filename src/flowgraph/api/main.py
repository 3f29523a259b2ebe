"""FastAPI application."""
from fastapi import FastAPI

from flowgraph import __version__
from flowgraph.api.routes import catalog, health, runs
from flowgraph.connectors import ConnectorInvoker, HttpConnectorInvoker
from flowgraph.executor import FlowExecutor
from flowgraph.observability import setup_logging
from flowgraph.storage import RunStore


def create_app(
    invoker: ConnectorInvoker | None = None,
    pacing_delay: float | None = None,
    max_runs: int | None = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        invoker: Connector invoker (HTTP gateway invoker by default)
        pacing_delay: Seconds between two nodes (settings default)
        max_runs: Runs kept in the run history (settings default)
    """
    app = FastAPI(
        title="Flow Graph Engine",
        description="Validate and run connector/action flows",
        version=__version__,
    )

    executor = FlowExecutor(
        invoker=invoker or HttpConnectorInvoker(),
        pacing_delay=pacing_delay,
    )
    app.state.run_store = RunStore(executor, max_runs=max_runs)

    app.include_router(health.router, tags=["health"])
    app.include_router(catalog.router, tags=["catalog"])
    app.include_router(runs.router, tags=["runs"])

    @app.get("/")
    def root() -> dict:
        """Root endpoint."""
        return {
            "service": "flowgraph",
            "version": __version__,
            "docs": "/docs",
        }

    return app


# Setup logging
setup_logging()

app = create_app()
