"""Desktop Chromium user agent pool with rotation.

Only Chromium-family agents are generated because pages are rendered with
Chromium; a Firefox or Safari agent on a Chromium engine is an easy
fingerprint mismatch.
"""

import logging
import random
from collections import deque
from typing import List

logger = logging.getLogger(__name__)

# {v} is the Chrome major version
CHROMIUM_TEMPLATES = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36 Edg/{v}.0.0.0",
]


class UserAgentPool:
    """
    Pool of desktop Chrome and Edge user agents across a version range.

    Rotation skips the most recently handed out agents while others remain.
    """

    def __init__(self, min_version: int = 116, max_version: int = 124, recent_size: int = 10):
        """
        Args:
            min_version: Lowest Chrome major version to generate
            max_version: Highest Chrome major version to generate (inclusive)
            recent_size: How many recently used agents to skip when rotating
        """
        self._user_agents: List[str] = [
            template.format(v=version)
            for version in range(min_version, max_version + 1)
            for template in CHROMIUM_TEMPLATES
        ]
        self._recent: deque = deque(maxlen=recent_size)
        logger.debug(f"Generated user agent pool with {len(self._user_agents)} agents")

    def __len__(self) -> int:
        return len(self._user_agents)

    def get_random(self, exclude_recent: bool = True) -> str:
        """
        Pick a user agent.

        Args:
            exclude_recent: Avoid agents among the last ``recent_size`` picks

        Returns:
            User agent string
        """
        candidates = self._user_agents
        if exclude_recent and self._recent:
            candidates = [ua for ua in self._user_agents if ua not in self._recent] or self._user_agents

        selected = random.choice(candidates)
        self._recent.append(selected)
        return selected


# Global user agent pool instance
user_agent_pool = UserAgentPool()
