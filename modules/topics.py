"""
MQTT Topic Builder
Derives the two topic names under which a device value is exposed:

    name-based: [prefix/]{location}/{name}/{command_class}[/{instance}]/{label}
    id-based:   [prefix/]{node_id}/{command_class_id}[/{instance}]/{index}

The instance segment only appears when the node carries more than one
instance of the command class.
"""
import logging
from typing import List, Tuple

from modules.interfaces import MetadataProvider
from modules.value_key import ValueKey

logger = logging.getLogger("topics")

TOPIC_SEPARATOR = "/"


def _join(prefix: str, segments: List[str]) -> str:
    if prefix:
        segments = [prefix] + segments
    return TOPIC_SEPARATOR.join(segments)


def build_name_topic(prefix: str, key: ValueKey, metadata: MetadataProvider, multi_instance: bool) -> str:
    segments = [
        metadata.node_location(key.network_id, key.node_id),
        metadata.node_name(key.network_id, key.node_id),
        metadata.command_class_name(key.command_class_id),
    ]
    if multi_instance:
        segments.append(str(key.instance))
    segments.append(metadata.value_label(key))
    return _join(prefix, segments)


def build_id_topic(prefix: str, key: ValueKey, multi_instance: bool) -> str:
    segments = [str(key.node_id), str(key.command_class_id)]
    if multi_instance:
        segments.append(str(key.instance))
    segments.append(str(key.index))
    return _join(prefix, segments)


def build_topics(prefix: str, key: ValueKey, metadata: MetadataProvider) -> Tuple[str, str]:
    """
    Build the (name_topic, id_topic) pair for a value.

    Display names and labels are used as-is; callers are responsible for
    keeping them topic-safe. Errors raised by the metadata provider
    (e.g. UnknownValueError) propagate.
    """
    prefix = prefix or ""
    instances = metadata.instance_count(key.network_id, key.node_id, key.command_class_id)
    multi_instance = instances > 1

    name_topic = build_name_topic(prefix, key, metadata, multi_instance)
    id_topic = build_id_topic(prefix, key, multi_instance)

    logger.debug(f"Topics for {key}: {name_topic} | {id_topic}")
    return name_topic, id_topic
