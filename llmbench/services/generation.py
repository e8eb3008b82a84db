"""
Text generation against LLM providers.

Provides:
- The provider and model catalogue
- Slot validation
- An HTTP backend for Anthropic, OpenAI-style and Gemini APIs
- Fan-out dispatch of one prompt to both panels concurrently
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Optional, Protocol
from urllib.parse import urlparse

import requests

from llmbench.core.models import PanelId, PanelOutput, Provenance, utc_now_iso
from llmbench.services.settings import ProviderSlot
from llmbench.workers.thread_pool import WorkerPool


# =============================================================================
# Provider Catalogue
# =============================================================================

@dataclass(frozen=True)
class ModelConfig:
    """A model offered by a provider."""
    id: str
    name: str
    context_window: int
    max_output_tokens: int


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of a provider."""
    id: str
    name: str
    description: str
    models: tuple[ModelConfig, ...]
    requires_api_key: bool = True
    base_url_configurable: bool = False
    default_base_url: str = ""


PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    'anthropic': ProviderConfig(
        id='anthropic',
        name="Anthropic (Claude)",
        description="Claude models from Anthropic",
        models=(
            ModelConfig("claude-sonnet-4-20250514", "Claude Sonnet 4", 200000, 8192),
            ModelConfig("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", 200000, 8192),
        ),
    ),
    'openai': ProviderConfig(
        id='openai',
        name="OpenAI",
        description="GPT models from OpenAI",
        models=(
            ModelConfig("gpt-4o", "GPT-4o", 128000, 4096),
            ModelConfig("gpt-4o-mini", "GPT-4o Mini", 128000, 16384),
            ModelConfig("o1", "o1", 200000, 100000),
            ModelConfig("o1-mini", "o1-mini", 128000, 65536),
        ),
    ),
    'google': ProviderConfig(
        id='google',
        name="Google (Gemini)",
        description="Gemini models from Google",
        models=(
            ModelConfig("gemini-2.5-pro", "Gemini 2.5 Pro", 1048576, 65536),
            ModelConfig("gemini-2.5-flash", "Gemini 2.5 Flash", 1048576, 65536),
        ),
    ),
    'ollama': ProviderConfig(
        id='ollama',
        name="Ollama (Local)",
        description="Run models locally with Ollama",
        models=(
            ModelConfig("llama3.2", "Llama 3.2", 128000, 4096),
            ModelConfig("llama3.1", "Llama 3.1", 128000, 4096),
            ModelConfig("mistral", "Mistral", 32000, 4096),
        ),
        requires_api_key=False,
        base_url_configurable=True,
        default_base_url="http://localhost:11434",
    ),
    'openai-compatible': ProviderConfig(
        id='openai-compatible',
        name="OpenAI-Compatible API",
        description="Any API compatible with OpenAI format (Together, Groq, etc.)",
        models=(
            ModelConfig("custom", "Custom Model", 32000, 4096),
        ),
        base_url_configurable=True,
    ),
}

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_URL = "https://api.openai.com/v1"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def get_default_model(provider: str) -> str:
    config = PROVIDER_CONFIGS.get(provider)
    if config is None or not config.models:
        return "custom"
    return config.models[0].id


def get_model_display_name(provider: str, model_id: str) -> str:
    """Catalogue name for a model, or the id itself when unknown."""
    config = PROVIDER_CONFIGS.get(provider)
    if config is not None:
        for model in config.models:
            if model.id == model_id:
                return model.name
    return model_id


def model_for(slot: ProviderSlot) -> str:
    """Model a slot will request; the provider default when none is set."""
    return slot.effective_model or get_default_model(slot.provider)


def provider_name(provider: str) -> str:
    config = PROVIDER_CONFIGS.get(provider)
    return config.name if config else provider


# =============================================================================
# Validation and Errors
# =============================================================================

class GenerationError(Exception):
    """A generation call failed; the message is shown to the user."""
    pass


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a provider slot."""
    valid: bool
    error: Optional[str] = None


def validate_slot(slot: ProviderSlot) -> ValidationResult:
    """
    Check a slot's provider, key and base URL before dispatch.

    Args:
        slot: Slot to check (its environment-resolved API key is used)

    Returns:
        ValidationResult; error is set when invalid
    """
    config = PROVIDER_CONFIGS.get(slot.provider)
    if config is None:
        return ValidationResult(False, f"Unknown provider: {slot.provider}")

    api_key = slot.resolved_api_key()
    if config.requires_api_key and not api_key:
        return ValidationResult(False, f"{config.name} requires an API key.")

    if api_key:
        if slot.provider == 'anthropic' and not api_key.startswith('sk-ant-'):
            return ValidationResult(
                False, "Invalid Anthropic API key format. Keys should start with 'sk-ant-'"
            )
        if slot.provider == 'openai' and not api_key.startswith(('sk-', 'sess-')):
            return ValidationResult(
                False, "Invalid OpenAI API key format. Keys should start with 'sk-'"
            )

    if slot.provider == 'openai-compatible':
        if not slot.base_url:
            return ValidationResult(False, f"{config.name} requires a base URL.")
        parsed = urlparse(slot.base_url)
        if not parsed.scheme or not parsed.netloc:
            return ValidationResult(False, "Invalid base URL format")

    return ValidationResult(True)


def describe_failure(provider: str, model: str, message: str) -> str:
    """
    Map a raw failure message to a user-facing one.

    Unrecognized messages are returned unchanged.
    """
    name = provider_name(provider)
    lowered = message.lower()

    if 'rate limit' in lowered or 'too many requests' in lowered:
        return f"Rate limit exceeded for {name}. Please wait and try again."
    if 'authentication' in lowered or 'api key' in lowered or 'unauthorized' in lowered:
        return f"Authentication failed for {name}. Check your API key."
    if 'model' in lowered and 'not found' in lowered:
        return f'Model "{model}" not found for {name}.'
    if 'connection' in lowered or 'econnrefused' in lowered:
        if provider == 'ollama':
            return "Cannot connect to Ollama. Ensure Ollama is running with `ollama serve`."
        return f"Cannot connect to {name}."
    return message


# =============================================================================
# Backends
# =============================================================================

class GenerationBackend(Protocol):
    """Produces text for one slot and prompt. Raises on failure."""

    def generate(self, slot: ProviderSlot, prompt: str) -> str:
        ...


class HttpBackend:
    """
    Calls provider REST APIs with requests.

    Anthropic uses the Messages API; OpenAI, Ollama and OpenAI-compatible
    servers use chat completions; Google uses generateContent.
    """

    def __init__(self, timeout: float = 120.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, slot: ProviderSlot, prompt: str) -> str:
        model = model_for(slot)
        try:
            if slot.provider == 'anthropic':
                text = self._anthropic(slot, model, prompt)
            elif slot.provider in ('openai', 'ollama', 'openai-compatible'):
                text = self._chat_completions(slot, model, prompt)
            elif slot.provider == 'google':
                text = self._gemini(slot, model, prompt)
            else:
                raise GenerationError(f"Unsupported provider: {slot.provider}")
        except requests.ConnectionError as e:
            raise GenerationError(describe_failure(slot.provider, model, f"connection error: {e}")) from e
        except requests.Timeout as e:
            raise GenerationError(f"Request to {provider_name(slot.provider)} timed out.") from e
        except requests.HTTPError as e:
            raise GenerationError(
                describe_failure(slot.provider, model, _http_error_message(e))
            ) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GenerationError(
                f"Unexpected response from {provider_name(slot.provider)}: {e}"
            ) from e

        if not text or not text.strip():
            raise GenerationError(f"{provider_name(slot.provider)} returned an empty response.")
        return text

    def _post(self, url: str, headers: dict, payload: dict, params: Optional[dict] = None) -> dict:
        response = self.session.post(url, headers=headers, json=payload, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _anthropic(self, slot: ProviderSlot, model: str, prompt: str) -> str:
        payload = {
            'model': model,
            'max_tokens': slot.max_tokens,
            'temperature': slot.temperature,
            'messages': [{'role': 'user', 'content': prompt}],
        }
        if slot.system_prompt:
            payload['system'] = slot.system_prompt
        headers = {
            'x-api-key': slot.resolved_api_key(),
            'anthropic-version': ANTHROPIC_VERSION,
            'content-type': 'application/json',
        }
        data = self._post(ANTHROPIC_URL, headers, payload)
        return "".join(
            block.get('text', '') for block in data['content'] if block.get('type') == 'text'
        )

    def _chat_completions(self, slot: ProviderSlot, model: str, prompt: str) -> str:
        if slot.provider == 'ollama':
            base = (slot.base_url or PROVIDER_CONFIGS['ollama'].default_base_url).rstrip('/') + "/v1"
            api_key = "ollama"
        elif slot.provider == 'openai-compatible':
            base = slot.base_url.rstrip('/')
            api_key = slot.resolved_api_key()
        else:
            base = OPENAI_URL
            api_key = slot.resolved_api_key()

        messages = []
        if slot.system_prompt:
            messages.append({'role': 'system', 'content': slot.system_prompt})
        messages.append({'role': 'user', 'content': prompt})

        payload = {
            'model': model,
            'messages': messages,
            'temperature': slot.temperature,
            'max_tokens': slot.max_tokens,
        }
        headers = {'Authorization': f"Bearer {api_key}", 'Content-Type': 'application/json'}
        data = self._post(f"{base}/chat/completions", headers, payload)
        return data['choices'][0]['message']['content'] or ""

    def _gemini(self, slot: ProviderSlot, model: str, prompt: str) -> str:
        payload: dict = {
            'contents': [{'role': 'user', 'parts': [{'text': prompt}]}],
            'generationConfig': {
                'temperature': slot.temperature,
                'maxOutputTokens': slot.max_tokens,
            },
        }
        if slot.system_prompt:
            payload['systemInstruction'] = {'parts': [{'text': slot.system_prompt}]}
        headers = {'x-goog-api-key': slot.resolved_api_key(), 'Content-Type': 'application/json'}
        data = self._post(f"{GEMINI_URL}/{model}:generateContent", headers, payload)
        parts = data['candidates'][0]['content']['parts']
        return "".join(part.get('text', '') for part in parts)


def _http_error_message(error: requests.HTTPError) -> str:
    """Status-derived message plus the provider's own error text."""
    response = error.response
    status = response.status_code if response is not None else 0
    prefix = {
        401: "unauthorized",
        403: "authentication failed",
        429: "rate limit",
    }.get(status, f"HTTP {status}")

    detail = ""
    if response is not None:
        try:
            body = response.json()
            err = body.get('error') if isinstance(body, dict) else None
            if isinstance(err, dict):
                detail = str(err.get('message', ''))
            elif err:
                detail = str(err)
        except ValueError:
            detail = response.text[:200]

    if status == 404 and 'model' not in detail.lower():
        detail = f"model not found. {detail}".strip()
    return f"{prefix}: {detail}" if detail else prefix


# =============================================================================
# Fan-out Dispatch
# =============================================================================

@dataclass
class DispatchResult:
    """Outputs of one prompt sent to both panels."""
    prompt: str
    generated_at: str
    outputs: dict[PanelId, PanelOutput] = field(default_factory=dict)

    @property
    def output_a(self) -> PanelOutput:
        return self.outputs[PanelId.A]

    @property
    def output_b(self) -> PanelOutput:
        return self.outputs[PanelId.B]

    @property
    def all_failed(self) -> bool:
        return all(output.is_error for output in self.outputs.values())


def _provenance(slot: ProviderSlot, response_time_ms: int, generated_at: str) -> Provenance:
    model = model_for(slot)
    return Provenance(
        provider=slot.provider,
        model=model,
        model_display_name=get_model_display_name(slot.provider, model),
        temperature=slot.temperature,
        system_prompt=slot.system_prompt,
        response_time_ms=response_time_ms,
        generated_at=generated_at,
    )


def generate_panel(
    backend: GenerationBackend,
    panel: PanelId,
    slot: ProviderSlot,
    prompt: str,
    generated_at: str
) -> PanelOutput:
    """
    Run one panel's generation, converting any failure into an error output.

    Errors carry provenance with a zero response time.
    """
    validation = validate_slot(slot)
    if not validation.valid:
        logging.warning(f"Generation - Panel {panel.value} misconfigured: {validation.error}")
        return PanelOutput.failure(validation.error, _provenance(slot, 0, generated_at))

    start = time.perf_counter()
    try:
        text = backend.generate(slot, prompt)
    except GenerationError as e:
        logging.warning(f"Generation - Panel {panel.value} failed: {e}")
        return PanelOutput.failure(str(e), _provenance(slot, 0, generated_at))
    except Exception as e:
        message = describe_failure(slot.provider, model_for(slot), str(e)) \
            or f"Panel {panel.value} generation failed"
        logging.error(f"Generation - Panel {panel.value} raised {type(e).__name__}: {e}")
        return PanelOutput.failure(message, _provenance(slot, 0, generated_at))

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    logging.info(f"Generation - Panel {panel.value} ({model_for(slot)}) answered in {elapsed_ms} ms")
    return PanelOutput.success(text, _provenance(slot, elapsed_ms, generated_at))


def fan_out_generate(
    prompt: str,
    slot_a: ProviderSlot,
    slot_b: ProviderSlot,
    backend: Optional[GenerationBackend] = None,
    generated_at: Optional[str] = None
) -> DispatchResult:
    """
    Send one prompt to both panels concurrently.

    Each panel resolves independently: a failure in one never affects
    the other. Blocks until both have finished.

    Args:
        prompt: Prompt text (must not be blank)
        slot_a: Provider slot for panel A
        slot_b: Provider slot for panel B
        backend: Generation backend (HttpBackend by default)
        generated_at: Timestamp shared by both provenances

    Returns:
        DispatchResult with one output per panel

    Raises:
        GenerationError: If the prompt is blank or both slots are invalid
    """
    if not prompt or not prompt.strip():
        raise GenerationError("Prompt is required")

    validations = {PanelId.A: validate_slot(slot_a), PanelId.B: validate_slot(slot_b)}
    if not any(v.valid for v in validations.values()):
        raise GenerationError(
            "Both providers are misconfigured: "
            f"A: {validations[PanelId.A].error}; B: {validations[PanelId.B].error}"
        )

    backend = backend or HttpBackend()
    generated_at = generated_at or utc_now_iso()
    result = DispatchResult(prompt=prompt, generated_at=generated_at)
    lock = Lock()

    def store(panel: PanelId, output: PanelOutput) -> None:
        with lock:
            result.outputs[panel] = output

    pool = WorkerPool(max_workers=2)
    for panel, slot in ((PanelId.A, slot_a), (PanelId.B, slot_b)):
        pool.submit(
            generate_panel, backend, panel, slot, prompt, generated_at,
            callback=lambda output, p=panel: store(p, output),
        )
    pool.wait_all()

    return result
