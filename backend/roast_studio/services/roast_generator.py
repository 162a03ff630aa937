"""
Host response generation (OpenAI-compatible chat completions)
"""

import logging
from typing import Optional

import httpx

from roast_studio.core.config import settings
from roast_studio.core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

HOST_NAMES = {"A": "Chaos Carl", "B": "Roast Ronnie"}

# Used by clients when generation fails
CANNED_RESPONSES = {
    "A": "Oh WOW, that was BRUTAL! 🔥",
    "B": "Now that's what I call a proper roast.",
}

HOST_PROMPTS = {
    "A": """You are Chaos Carl, an over-the-top parody crypto comedian hosting a roast show.
The show features "{persona}" as the target, but YOUR job is to REACT to audience comments.
When an audience member says something funny about {persona}, you:
- Laugh at their joke, add to it, or riff on what they said
- Be chaotic, wild, and absurdly funny
- Use crypto/web3 lingo ironically
- DO NOT make up new roasts about {persona} - react to what the AUDIENCE said

Every response must be UNIQUE. Pick a different reaction style each time:
shout excitedly, fake-cry, play shocked, riff on the roast with your own addition,
or call back to crypto culture ("That's more brutal than a rug pull!").

Respond in 1-2 short sentences. Be punchy and reactive.""",
    "B": """You are Roast Ronnie, a washed-up 80s stand-up comedian who somehow ended up co-hosting a crypto roast show.
The show features "{persona}" as the target, but YOUR job is to REACT to audience comments.
When an audience member says something about {persona}, you:
- React like an old-school comedian with "Ba dum tss!" energy
- Make dated pop culture references (80s/90s movies, old celebrities)
- Use classic comedy phrases like "I kid, I kid!" or "But seriously folks..."
- Add your own punchline that builds on their joke
- DO NOT make up new roasts about {persona} - react to what the AUDIENCE said

Every response must be UNIQUE. Rotate between a classic rimshot, an old reference,
playing the straight man, fake nostalgia and self-deprecation.

Respond in 1-2 short sentences. Be punchy.""",
}


class RoastGenerator:
    """Writes one host's reaction to an audience roast"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.LLM_BASE_URL.rstrip('/')
        self.api_key = settings.LLM_API_KEY
        self.model = settings.LLM_MODEL
        self.timeout = settings.LLM_TIMEOUT
        self._client = client

    def _build_messages(self, persona_name: str, user_roast: str, host_type: str) -> list:
        """System prompt for the host plus the audience roast"""
        system_prompt = HOST_PROMPTS[host_type].format(persona=persona_name)
        roast = user_roast.strip() or "[Voice clip]"
        return [
            {"role": "system", "content": system_prompt},
            {
                "role": "user",
                "content": f'An audience member just submitted this roast about {persona_name}: "{roast}". React to their comment!',
            },
        ]

    async def generate(self, persona_name: str, user_roast: str, host_type: str) -> str:
        """Return the host's response; raises CollaboratorError on any failure"""
        if host_type not in HOST_PROMPTS:
            raise ValueError(f"Unknown host type: {host_type}")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "model": self.model,
            "messages": self._build_messages(persona_name, user_roast, host_type),
            "temperature": 1.2,
        }

        try:
            if self._client is not None:
                response = await self._client.post(f"{self.base_url}/chat/completions", json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(f"{self.base_url}/chat/completions", json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Response generation timed out: %s", e)
            raise CollaboratorError("response generation timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning("Response generation failed: %s %s", e.response.status_code, e.response.text[:200])
            raise CollaboratorError(f"response generation returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("Response generation unreachable: %s", e)
            raise CollaboratorError("response generation unreachable") from e

        choices = data.get("choices") or []
        content = (choices[0].get("message", {}).get("content") or "").strip() if choices else ""
        if not content:
            raise CollaboratorError("response generation returned no content")

        logger.info("%s reacted to a roast about %s", HOST_NAMES[host_type], persona_name)
        return content
