"""Tests for the per-family generation tools and catalog tools."""
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from asset_forge.core.cache import ReadThroughCache
from asset_forge.core.context import ExecutionContext
from asset_forge.core.job import AssetGenerator
from asset_forge.core.registry import InvocationRequest, ToolRegistry
from asset_forge.errors import ProviderError, StorageUploadError
from asset_forge.services import Services
from asset_forge.tools.audio import MUSIC_ENDPOINT, SFX_ENDPOINT, MusicJob, SfxJob
from asset_forge.tools.catalog import ModelSchemaTool, ModelsListTool, supported_models
from asset_forge.tools.cinematic import CINEMATIC_ENDPOINT, CinematicJob
from asset_forge.tools.image import (
    BACKGROUND_REMOVAL_ENDPOINT,
    IMAGE_ENDPOINT,
    ImageAssetJob,
    build_image_prompt,
    ImageArgs,
)
from asset_forge.tools.skybox import SkyboxJob, SkyboxStylesTool, register_skybox_tools


def _fal(**methods):
    fal = MagicMock()
    for name, value in methods.items():
        setattr(fal, name, value)
    return fal


def _payload(result):
    assert result.isError is False, result.content[0].text
    return json.loads(result.content[0].text)


# --- cinematic ---------------------------------------------------------------

@pytest.mark.anyio
async def test_cinematic_truncates_reference_images(caplog):
    """Extra reference images are dropped with a warning."""
    fal = _fal(queue_submit=AsyncMock(return_value={"request_id": "abc123"}))
    tool = AssetGenerator(CinematicJob(fal))
    urls = [f"https://img.test/{i}.png" for i in range(5)]

    with caplog.at_level(logging.WARNING):
        result = await tool.execute({"prompt": "a knight", "reference_image_urls": urls}, ExecutionContext())

    payload = _payload(result)
    assert payload["request_id"] == "abc123"
    assert payload["model"] == CINEMATIC_ENDPOINT
    assert "Too many reference images provided" in caplog.text

    endpoint, parameters = fal.queue_submit.call_args.args
    assert endpoint == CINEMATIC_ENDPOINT
    assert parameters["reference_image_urls"] == urls[:3]
    assert parameters["prompt"].startswith("a knight, photorealistic")
    assert parameters["aspect_ratio"] == "16:9"
    assert "seed" not in parameters


@pytest.mark.anyio
@pytest.mark.parametrize(
    "arguments",
    [
        {"prompt": "a knight"},
        {"prompt": "a knight", "reference_image_urls": ["u"], "aspect_ratio": "4:3"},
        {"prompt": "x" * 1501, "reference_image_urls": ["u"]},
    ],
)
async def test_cinematic_rejects_bad_arguments(arguments):
    """Invalid cinematic arguments are rejected."""
    fal = _fal(queue_submit=AsyncMock())
    result = await AssetGenerator(CinematicJob(fal)).execute(arguments, ExecutionContext())
    assert result.isError is True
    fal.queue_submit.assert_not_awaited()


# --- audio -------------------------------------------------------------------

@pytest.mark.parametrize("duration, expected", [(None, 5), (1, 1), (30, 30), (12.0, 12)])
def test_sfx_duration_accepted(duration, expected):
    """Sound effect durations inside the range are accepted."""
    args = SfxJob(_fal()).sanitize_arguments({"prompt": "door creak", "duration": duration})
    assert args["duration"] == expected


@pytest.mark.anyio
@pytest.mark.parametrize("duration", [0, 31, 2.5, "10", True])
async def test_sfx_duration_rejected(duration):
    """Sound effect durations outside the range are rejected."""
    fal = _fal(queue_submit=AsyncMock())
    result = await AssetGenerator(SfxJob(fal)).execute({"prompt": "boom", "duration": duration}, ExecutionContext())
    assert result.isError is True
    assert "Duration must be an integer between 1 and 30 seconds." in result.content[0].text
    fal.queue_submit.assert_not_awaited()


@pytest.mark.anyio
async def test_music_defaults_and_submits_to_cassette():
    """Music applies defaults and submits to the cassette model."""
    fal = _fal(queue_submit=AsyncMock(return_value={"request_id": "m-1"}))
    payload = _payload(await AssetGenerator(MusicJob(fal)).execute({"prompt": "battle theme"}, ExecutionContext()))

    fal.queue_submit.assert_awaited_once_with(MUSIC_ENDPOINT, {"prompt": "battle theme", "duration": 30})
    assert payload["model"] == MUSIC_ENDPOINT
    assert "audio_status" in payload["message"]


@pytest.mark.anyio
async def test_music_duration_out_of_range():
    """Music durations above the limit are rejected."""
    fal = _fal(queue_submit=AsyncMock())
    result = await AssetGenerator(MusicJob(fal)).execute({"prompt": "x", "duration": 500}, ExecutionContext())
    assert result.isError is True
    assert "duration" in result.content[0].text


@pytest.mark.anyio
async def test_music_zero_duration_rejected_before_submit():
    """An explicit duration of 0 is validated rather than replaced by the default."""
    fal = _fal(queue_submit=AsyncMock())
    result = await AssetGenerator(MusicJob(fal)).execute({"prompt": "x", "duration": 0}, ExecutionContext())
    assert result.isError is True
    assert "duration" in result.content[0].text
    fal.queue_submit.assert_not_awaited()


@pytest.mark.anyio
async def test_sfx_submit_error_is_reported():
    """Sound effect submission errors are reported."""
    fal = _fal(queue_submit=AsyncMock(side_effect=ProviderError("status 500", endpoint=SFX_ENDPOINT)))
    result = await AssetGenerator(SfxJob(fal)).execute({"prompt": "boom"}, ExecutionContext())
    assert result.isError is True
    assert "Failed to submit sound effect generation request" in result.content[0].text


# --- image -------------------------------------------------------------------

@pytest.mark.anyio
async def test_image_transparent_type_removes_background():
    """Transparent asset types go through background removal."""
    fal = _fal(run_direct=AsyncMock(side_effect=[
        {"images": [{"url": "https://fal.test/raw.png"}]},
        {"image": {"url": "https://fal.test/clean.png"}},
    ]))
    storage = MagicMock()
    storage.upload_asset = AsyncMock(return_value="https://owned-storage.test/v/static-assets/x.png")

    payload = _payload(await AssetGenerator(ImageAssetJob(fal, storage)).execute(
        {"description": "a goblin", "assetType": "character"}, ExecutionContext()
    ))

    first, second = fal.run_direct.call_args_list
    assert first.args[0] == IMAGE_ENDPOINT
    assert first.args[1]["image_size"] == {"width": 512, "height": 512}
    assert first.args[1]["style"] == "digital_illustration/pixel_art"
    assert second.args[0] == BACKGROUND_REMOVAL_ENDPOINT
    assert second.args[1]["image_url"] == "https://fal.test/raw.png"
    storage.upload_asset.assert_awaited_once_with("https://fal.test/clean.png", "character")
    assert payload["url"] == "https://owned-storage.test/v/static-assets/x.png"
    assert payload["dimensions"] == {"width": 512, "height": 512}


@pytest.mark.anyio
async def test_image_background_keeps_original():
    """Backgrounds skip background removal."""
    fal = _fal(run_direct=AsyncMock(return_value={"images": [{"url": "https://fal.test/bg.png"}]}))
    storage = MagicMock()
    storage.upload_asset = AsyncMock(return_value="https://owned-storage.test/v/static-assets/bg.png")

    payload = _payload(await AssetGenerator(ImageAssetJob(fal, storage)).execute(
        {"description": "forest", "assetType": "background", "style": "Cartoon"}, ExecutionContext()
    ))

    assert fal.run_direct.await_count == 1
    assert payload["style"] == "cartoon"
    assert payload["dimensions"] == {"width": 1024, "height": 1024}


@pytest.mark.anyio
async def test_image_upload_failure_fails_call():
    """Image upload failures fail the call."""
    fal = _fal(run_direct=AsyncMock(return_value={"images": [{"url": "https://fal.test/bg.png"}]}))
    storage = MagicMock()
    storage.upload_asset = AsyncMock(side_effect=StorageUploadError("Upload failed: 500"))

    result = await AssetGenerator(ImageAssetJob(fal, storage)).execute(
        {"description": "forest", "assetType": "background"}, ExecutionContext()
    )
    assert result.isError is True
    assert "Upload failed: 500" in result.content[0].text


@pytest.mark.anyio
@pytest.mark.parametrize("dimension", ["width", "height"])
async def test_image_zero_dimension_rejected(dimension):
    """A zero width or height is rejected instead of silently using the asset type size."""
    fal = _fal(run_direct=AsyncMock())
    result = await AssetGenerator(ImageAssetJob(fal, MagicMock())).execute(
        {"description": "forest", "assetType": "background", dimension: 0}, ExecutionContext()
    )
    assert result.isError is True
    assert dimension in result.content[0].text
    fal.run_direct.assert_not_awaited()


def test_image_unknown_type_and_style_fall_back(caplog):
    """Unknown asset types and styles fall back with warnings."""
    job = ImageAssetJob(_fal(), MagicMock())
    with caplog.at_level(logging.WARNING):
        args = job.sanitize_arguments({"description": "sword", "assetType": "spaceship", "style": "oil"})
    assert args["asset_type"] == "character"
    assert args["style"] == "pixel art"
    assert "Unsupported asset type" in caplog.text
    assert "Unsupported style" in caplog.text


def test_image_prompt_includes_hints():
    """The image prompt includes type, style and game hints."""
    prompt = build_image_prompt(ImageArgs(
        description="health potion", style="pixel art", asset_type="item",
        width=256, height=256, game_type="RPG", additional_prompt="red glow",
    ))
    assert prompt.startswith("2D pixel art style item for a game: health potion")
    assert "magenta" in prompt
    assert "RPG game" in prompt
    assert prompt.endswith("red glow")


# --- skybox ------------------------------------------------------------------

@pytest.mark.anyio
async def test_skybox_generate_returns_obfuscated_id():
    """Skybox generation returns the obfuscated id as request_id."""
    blockade = MagicMock()
    blockade.create_skybox = AsyncMock(return_value={"id": 42, "obfuscated_id": "sky-abc", "status": "pending"})

    payload = _payload(await AssetGenerator(SkyboxJob(blockade)).execute(
        {"prompt": "floating islands", "skybox_style_id": 2}, ExecutionContext()
    ))

    blockade.create_skybox.assert_awaited_once_with({"prompt": "floating islands", "skybox_style_id": 2})
    assert payload["request_id"] == "sky-abc"
    assert payload["skybox_id"] == 42
    assert payload["status"] == "PENDING"


@pytest.mark.anyio
async def test_skybox_status_includes_blockade_fields(settings):
    """Skybox status includes Blockade queue fields."""
    services = Services(settings)
    services.blockade = MagicMock()
    services.blockade.get_request = AsyncMock(return_value={
        "id": 42,
        "obfuscated_id": "sky-abc",
        "status": "complete",
        "file_url": "https://blockade.test/sky.jpg",
        "thumb_url": "https://blockade.test/thumb.jpg",
        "depth_map_url": "",
        "error_message": None,
    })
    registry = ToolRegistry()
    register_skybox_tools(registry, services)

    schema = registry.get("skybox_status").input_schema
    assert "model" not in schema["properties"]

    result = await registry.execute(InvocationRequest(name="skybox_status", arguments={"request_id": "sky-abc"}))
    payload = _payload(result)

    services.blockade.get_request.assert_awaited_once_with("sky-abc")
    assert payload["status"] == "COMPLETED"
    assert payload["is_complete"] is True
    assert payload["file_url"] == "https://blockade.test/sky.jpg"
    assert payload["skybox_id"] == 42
    assert "depth_map_url" not in payload
    assert "skybox_result" in payload["message"]


@pytest.mark.anyio
async def test_skybox_styles_are_fetched_once():
    """Skybox styles are fetched once and cached."""
    loader = AsyncMock(return_value=[{"id": 2, "name": "Fantasy", "sort_order": 1, "premium": 1}])
    tool = SkyboxStylesTool(ReadThroughCache("skybox styles", loader))

    first = _payload(await tool.execute({}, ExecutionContext()))
    second = _payload(await tool.execute({}, ExecutionContext()))

    assert first == second == {"styles": [{"id": 2, "name": "Fantasy", "sort_order": 1}], "count": 1}
    loader.assert_awaited_once()


@pytest.mark.anyio
async def test_styles_load_failure_is_not_cached():
    """A failed styles load is not cached."""
    loader = AsyncMock(side_effect=[RuntimeError("blockade down"), [{"id": 1, "name": "Sky"}]])
    cache = ReadThroughCache("skybox styles", loader)
    tool = SkyboxStylesTool(cache)

    failed = await tool.execute({}, ExecutionContext())
    assert failed.isError is True
    assert not cache.loaded

    assert _payload(await tool.execute({}, ExecutionContext()))["count"] == 1
    assert cache.loaded


# --- catalog -----------------------------------------------------------------

@pytest.mark.anyio
@pytest.mark.parametrize("asset_type, count", [("all", 5), ("static", 2), ("audio", 2), ("cinematic", 1), (None, 5)])
async def test_models_list(asset_type, count):
    """The models list, optionally filtered by asset type."""
    arguments = {} if asset_type is None else {"assetType": asset_type}
    models = _payload(await ModelsListTool().execute(arguments, ExecutionContext()))
    assert len(models) == count
    assert all({"id", "name", "tool"} <= set(m) for m in models)


@pytest.mark.anyio
async def test_models_list_rejects_unknown_type():
    """Unknown model types are rejected."""
    result = await ModelsListTool().execute({"assetType": "3d"}, ExecutionContext())
    assert result.isError is True
    assert "Unknown assetType" in result.content[0].text


def test_catalog_lists_every_generation_endpoint():
    """The catalog lists every generation endpoint."""
    ids = {m["id"] for m in supported_models("all")}
    assert {IMAGE_ENDPOINT, CINEMATIC_ENDPOINT, MUSIC_ENDPOINT, SFX_ENDPOINT} <= ids


@pytest.mark.anyio
async def test_model_schema_requires_model_id():
    """Model schema lookups need a model id."""
    fal = _fal(fetch_model_schema=AsyncMock())
    result = await ModelSchemaTool(fal).execute({}, ExecutionContext())
    assert result.isError is True
    fal.fetch_model_schema.assert_not_awaited()


@pytest.mark.anyio
async def test_model_schema_returns_document():
    """Model schema lookups return the provider document."""
    fal = _fal(fetch_model_schema=AsyncMock(return_value={"openapi": "3.0.0"}))
    payload = _payload(await ModelSchemaTool(fal).execute({"model_id": CINEMATIC_ENDPOINT}, ExecutionContext()))
    assert payload == {"openapi": "3.0.0"}
    fal.fetch_model_schema.assert_awaited_once_with(CINEMATIC_ENDPOINT)


@pytest.mark.anyio
async def test_skybox_result_uploads_file_url(settings):
    """Skybox results upload the file URL to owned storage."""
    services = Services(settings)
    services.blockade = MagicMock()
    services.blockade.get_request = AsyncMock(return_value={
        "obfuscated_id": "sky-abc", "status": "complete", "file_url": "https://blockade.test/sky.jpg",
    })
    services.storage = MagicMock()
    services.storage.download = AsyncMock(return_value=(b"jpg", "image/jpeg"))
    services.storage.extension_for = MagicMock(return_value=".jpg")
    services.storage.upload = AsyncMock(return_value="https://owned-storage.test/test-verse/skyboxes/skybox-sky-abc.jpg")
    registry = ToolRegistry()
    register_skybox_tools(registry, services)

    payload = _payload(await registry.execute(
        InvocationRequest(name="skybox_result", arguments={"request_id": "sky-abc"})
    ))

    services.storage.upload.assert_awaited_once_with(b"jpg", "image/jpeg", "skybox", "skybox-sky-abc.jpg")
    assert payload["url"].endswith("skybox-sky-abc.jpg")
    assert payload["original_url"] == "https://blockade.test/sky.jpg"
