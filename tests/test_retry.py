import pytest
from fastapi.responses import JSONResponse, PlainTextResponse

from filter_client.errors import ApiError, AuthError, NetworkError, RequestTimeoutError, ValidationError
from filter_client.retry import RetryPolicy, generate_with_retry

NO_WAIT = RetryPolicy(max_attempts=3, backoff_factor=0)


@pytest.mark.parametrize(
    "error, expected",
    [
        (ValidationError("no image selected"), False),
        (NetworkError("refused"), True),
        (RequestTimeoutError("slow"), True),
        (AuthError("down"), True),
        (ApiError(500, "boom"), True),
        (ApiError(401, "invalid token"), True),
        (ApiError(400, "bad filter"), False),
        (ValueError("not ours"), False),
    ],
)
def test_should_retry(error, expected):
    assert RetryPolicy().should_retry(error) is expected


def test_auth_retries_can_be_disabled():
    policy = RetryPolicy(retry_auth_failures=False)
    assert not policy.should_retry(AuthError("down"))
    assert not policy.should_retry(ApiError(403, "forbidden"))
    assert policy.should_retry(ApiError(502, "bad gateway"))


@pytest.mark.asyncio
async def test_retries_server_errors_until_success(client, service, jpeg_bytes):
    service.queued_responses = [PlainTextResponse("busy", status_code=503)]

    result = await generate_with_retry(client, jpeg_bytes, "Ghibli", policy=NO_WAIT)

    assert result.image_url == "https://results.test/ghibli.png"
    assert len(service.uploads) == 2


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(client, service, jpeg_bytes):
    service.generate_response = PlainTextResponse("busy", status_code=503)

    with pytest.raises(ApiError) as excinfo:
        await generate_with_retry(client, jpeg_bytes, "Ghibli", policy=NO_WAIT)

    assert excinfo.value.status == 503
    assert len(service.uploads) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(client, service, jpeg_bytes):
    service.generate_response = JSONResponse({"message": "unknown filter"}, status_code=400)

    with pytest.raises(ApiError, match="unknown filter"):
        await generate_with_retry(client, jpeg_bytes, "Nope", policy=NO_WAIT)
    assert len(service.uploads) == 1


@pytest.mark.asyncio
async def test_validation_errors_are_not_retried(client, service):
    with pytest.raises(ValidationError):
        await generate_with_retry(client, None, "Ghibli", policy=NO_WAIT)
    assert service.token_calls == 0


@pytest.mark.asyncio
async def test_revoked_token_is_replaced_on_retry(client, service, jpeg_bytes):
    await client.generate(jpeg_bytes, "Ghibli")
    service.revoke_all()

    result = await generate_with_retry(client, jpeg_bytes, "Ghibli", policy=NO_WAIT)

    assert result.image_url
    assert [u["token"] for u in service.uploads] == ["token-1", "token-2"]
