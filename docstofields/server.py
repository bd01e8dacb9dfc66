from __future__ import annotations

import asyncio
import logging
from typing import Annotated, List, Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .codec import decode_bytes, split_payload
from .completions import get_provider
from .config import configure_logging, load_config
from .errors import CompletionBackendError, DecodeError
from .extractor import ExtractedText, UnsupportedDocumentError, blocks_payload, extract_document
from .models import (
    AIConfig,
    CompletionRequest,
    DocumentPayload,
    ExtractResponse,
    ExtractTextRequest,
    ExtractTextResponse,
    ProviderConfigResponse,
)
from .prompts import render_instruction

config = load_config()
configure_logging(config.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="DocsToFields API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"message": "DocsToFields API", "status": "running"}


async def _extract(payload: str, enable_textract: bool) -> ExtractedText:
    mime, _ = split_payload(payload)
    try:
        data = decode_bytes(payload)
    except DecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        return await asyncio.to_thread(extract_document, data, mime, enable_textract)
    except UnsupportedDocumentError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Error extracting text")
        raise HTTPException(status_code=500, detail="Failed to extract text from PDF") from exc


@app.post("/extractText", response_model=ExtractTextResponse)
async def extract_text(body: ExtractTextRequest):
    if body.file is None or not body.file.payload:
        raise HTTPException(status_code=400, detail="No file provided")

    extracted = await _extract(body.file.payload, body.enable_textract)
    logger.info("Extracted %d page(s) from %s", extracted.pages, body.file.name)
    return ExtractTextResponse(text=extracted.text, blocks=extracted.blocks, pages=extracted.pages)


def _default_ai_config() -> AIConfig:
    return AIConfig(
        provider=config.provider,
        azure_endpoint=config.azure_endpoint or None,
        azure_deployment=config.azure_deployment or None,
        azure_api_version=config.azure_api_version,
    )


@app.post("/extract", response_model=ExtractResponse, response_model_exclude_none=True)
async def extract(
    body: CompletionRequest,
    x_auth_key: Annotated[Optional[str], Header()] = None,
):
    if not x_auth_key:
        raise HTTPException(status_code=401, detail="No API key provided")

    ai_config = body.ai_config or _default_ai_config()
    logger.info(
        "AI config: provider=%s endpoint=%s deployment=%s",
        ai_config.provider,
        ai_config.azure_endpoint,
        ai_config.azure_deployment,
    )
    try:
        provider = get_provider(ai_config, x_auth_key)
    except CompletionBackendError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    # positions must match the request, so unreadable entries keep an empty slot
    processed: List[DocumentPayload] = []
    for file in body.files:
        if file.text:
            processed.append(DocumentPayload(name=file.name, text=file.text, blocks=file.blocks))
        elif file.payload:
            extracted = await _extract(file.payload, body.enable_textract)
            processed.append(
                DocumentPayload(name=file.name, text=extracted.text, blocks=blocks_payload(extracted.blocks))
            )
        else:
            processed.append(DocumentPayload(name=file.name, text=""))

    if body.rendered:
        prompt = body.prompt
    else:
        prompt = render_instruction(
            body.prompt,
            [(file.name, file.text or "") for file in processed],
            fields=body.fields,
            labels=body.labels,
        )

    try:
        text = await asyncio.to_thread(provider.complete, body.system_prompt, prompt, body.model)
    except CompletionBackendError as exc:
        logger.error("Error extracting fields: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to extract fields") from exc

    return ExtractResponse(text=text, files=processed)


@app.get("/api/config", response_model=ProviderConfigResponse)
async def get_config():
    return ProviderConfigResponse(
        provider=config.provider,
        model=config.default_model,
        azure_endpoint=config.azure_endpoint,
        azure_deployment=config.azure_deployment,
        azure_api_version=config.azure_api_version,
    )
