from .orchestrator import BenchmarkOrchestrator, ProviderSelection

__all__ = ["BenchmarkOrchestrator", "ProviderSelection"]
