"""Transcription Gateway: one HTTP contract over many speech-to-text providers.

WHY: Speech-to-text services differ in how results come back. Some answer a
single request, others hand out a job that must be polled. Clients of this
gateway just upload a clip and receive ``{"text"}`` or ``{"error"}``.

HOW: Four stages. The stager prepares the audio, a provider adapter submits
it, the completion waiter polls pending jobs, and the normalizer shapes the
outcome. Each stage is independently testable.

RULES:
- Adding a provider = one new adapter module + one registry entry
- Staged audio never outlives the request that uploaded it
"""

__version__ = "0.1.0"
