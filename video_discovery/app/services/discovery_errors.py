from __future__ import annotations


class VideoDiscoveryError(Exception):
    status_code: int = 500


class TopicRequiredError(VideoDiscoveryError):
    status_code = 400


class TopicForbiddenError(VideoDiscoveryError):
    # Same message whether the topic is unknown or simply not in the user's plans.
    status_code = 403


class VideoSearchUnavailableError(VideoDiscoveryError):
    status_code = 503
