from typing import Optional

from api.backend import AssistantBackend

# Global instance initialized at startup (or injected by tests)
backend: Optional[AssistantBackend] = None
