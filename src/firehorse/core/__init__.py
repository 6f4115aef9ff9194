"""Core functionality for the Fire Horse art generator.

Architecture Overview
---------------------
1. **Configuration** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with FIREHORSE_ in .env files

2. **Prompt handling** (prompt_enhancer.py, fallback.py):
   - Themed prompt enhancement and validation
   - Deterministic placeholder selection

3. **Provider clients** (providers/):
   - One client per external image API, sharing timeout and error handling
   - Registry pattern for building clients from configuration

4. **Persistence** (artwork_store.py):
   - SQLite tables for artworks and one-per-voter likes

5. **Orchestration** (generation.py):
   - Provider chain with fallback, always ending in a stored artwork
"""

from firehorse.core.artwork_store import Artwork, ArtworkStore, LikeOutcome
from firehorse.core.config import FirehorseConfig, ProviderConfig, config
from firehorse.core.generation import GenerationOrchestrator

__all__ = [
    "Artwork",
    "ArtworkStore",
    "LikeOutcome",
    "FirehorseConfig",
    "ProviderConfig",
    "config",
    "GenerationOrchestrator",
]
