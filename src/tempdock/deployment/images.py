import logging
from typing import TYPE_CHECKING, Literal

from docker.errors import DockerException

from tempdock.exceptions import PullError

if TYPE_CHECKING:
    from docker import APIClient


def is_image_available(client: "APIClient", image: str, logger: logging.Logger) -> bool:
    logger.debug("Listing available images")
    for entry in client.images():
        tags = entry.get("RepoTags") or []
        logger.debug(f"Available: {tags} (searched: {image})")
        if image in tags:
            return True
    return False


def pull_image(client: "APIClient", image: str, logger: logging.Logger) -> None:
    """Pulls `image` and drains the progress stream.

    Raises:
        PullError: If the engine fails, the stream cannot be decoded or reports an error.
    """
    logger.info(f"Pulling {image}")
    try:
        for event in client.pull(image, stream=True, decode=True):
            if isinstance(event, dict) and event.get("error"):
                msg = f"Pulling {image}: {event['error']}"
                raise PullError(msg)
    except PullError:
        raise
    except (DockerException, ValueError, OSError) as e:
        msg = f"Pulling {image}: {e}"
        raise PullError(msg) from e
    logger.info(f"Image {image} pulled")


def ensure_image(
    client: "APIClient",
    image: str,
    *,
    pull: Literal["missing", "always", "never"] = "missing",
    logger: logging.Logger,
) -> None:
    """Makes sure `image` exists locally according to the pull policy."""
    if pull == "never":
        return
    if pull == "missing":
        try:
            if is_image_available(client, image, logger):
                return
        except (DockerException, OSError) as e:
            msg = f"Listing images: {e}"
            raise PullError(msg) from e
    pull_image(client, image, logger)
