import asyncio
import signal
import sys
from shared.config.settings import settings
from shared.utils.logging_config import get_logger, setup_logging
from agents.notification_agent.agent import RequisitionNotificationAgent
from agents.timeout_agent.agent import HrTimeoutAgent
from requisition_lifecycle_api.application.interfaces.di_container import close_all_services
setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console
    )
logger = get_logger(__name__)

class AgentOrchestrator:
    """Orchestrates the running of the requisition agents."""

    def __init__(self):
        self.shutdown_event = asyncio.Event()
        self.agents: list[asyncio.Task] = []


    def setup_signal_handlers(self):
        """Register signal handlers for graceful shutdown."""
        def handle_shutdown(sig, frame):
            sig_name = signal.Signals(sig).name
            logger.info(f"Received {sig_name}, initiating graceful shutdown...")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, handle_shutdown)   # Ctrl+C
        signal.signal(signal.SIGTERM, handle_shutdown)  # kill command

        # Windows compatibility
        if hasattr(signal, 'SIGBREAK'):
            signal.signal(signal.SIGBREAK, handle_shutdown)

    async def run_agent(self, agent_class, name: str):
        """Run a single agent with error handling."""
        logger.info(f"Starting {name}...")

        try:
            agent = agent_class(
                shutdown_event=self.shutdown_event
            )
            await agent.run()

        except asyncio.CancelledError:
            logger.info(f"{name} cancelled")
        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)
        finally:
            logger.info(f"{name} stopped")

    def agent_configs(self) -> list:
        configs = [(HrTimeoutAgent, "HrTimeoutAgent")]
        if settings.repository_type == "in_memory":
            logger.info("in_memory repository: requisition writes are dispatched in-process, bus consumer not started")
        else:
            configs.append((RequisitionNotificationAgent, "RequisitionNotificationAgent"))
        return configs

    async def start_all_agents(self):
        """Start all agents as concurrent tasks."""
        for agent_class, name in self.agent_configs():
            task = asyncio.create_task(
                self.run_agent(agent_class, name),
                name=name
            )
            self.agents.append(task)

        logger.info(f"Started {len(self.agents)} agents")


    async def wait_for_shutdown(self):
        """Wait for shutdown signal."""
        await self.shutdown_event.wait()
        logger.info("Shutdown signal received, stopping agents...")

    async def stop_all_agents(self, timeout: float = 30.0):
        """Stop all agents gracefully with timeout."""
        if not self.agents:
            return

        logger.info(f"Waiting up to {timeout}s for agents to finish...")

        try:
            await asyncio.wait_for(
                asyncio.gather(*self.agents, return_exceptions=True),
                timeout=timeout
            )
            logger.info("All agents stopped gracefully")

        except asyncio.TimeoutError:
            logger.warning("Timeout exceeded, forcing agent shutdown...")

            for task in self.agents:
                if not task.done():
                    task.cancel()

            await asyncio.gather(*self.agents, return_exceptions=True)
            logger.info("All agents forcefully stopped")

    async def run(self):
        """Main orchestrator loop."""
        self.setup_signal_handlers()

        try:
            await self.start_all_agents()

            await self.wait_for_shutdown()

            await self.stop_all_agents()

        except Exception as e:
            logger.error(f"Orchestrator error: {e}", exc_info=True)
            raise
        finally:
            await close_all_services()
            logger.info("Orchestrator shutdown complete")



async def main():
    """Entry point."""
    orchestrator = AgentOrchestrator()
    await orchestrator.run()



if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
