from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class UpstreamRawResponse:
	"""Collected output text of the upstream model, untrusted."""

	text: str


class AbstractLLMClient(ABC):
	"""Interface for clients of the upstream text-analysis service."""

	@abstractmethod
	async def complete_text(
		self,
		system_prompt: str,
		user_text: str,
	) -> UpstreamRawResponse:
		"""Send one deterministic request and return the raw output text.

		Args:
			system_prompt: Fixed instruction constraining the model's answer.
			user_text: The only variable input.

		Returns:
			UpstreamRawResponse: Collected output text, possibly empty.

		Raises:
			UpstreamAppError: If the service answers with a non-2xx status or
				cannot be reached. No retry is attempted.
		"""
		...
