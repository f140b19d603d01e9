"""Channel registry: immutable snapshot of the enabled notification channels."""
import logging

from alerts.channels import DiscordChannel, MattermostChannel, SlackChannel
from alerts.email_channel import EmailChannel
from alerts.notion_channel import NotionChannel
from alerts.webhook_channels import PluginChannel, WebhookChannel

logger = logging.getLogger("poolwatch.alerts.registry")

PLUGIN_PREFIX = "plugin:"

# Construction order is also the dispatch listing order
BUILTIN_CHANNELS = (
    ("slack", SlackChannel),
    ("discord", DiscordChannel),
    ("mattermost", MattermostChannel),
    ("webhook", WebhookChannel),
    ("email", EmailChannel),
    ("notion", NotionChannel),
)


class ChannelRegistry:
    """Holds the channels that are enabled and fully configured.

    A registry never changes after construction; a config reload builds a
    new one and the engine swaps the reference.
    """

    def __init__(self, channels=()):
        self._channels = tuple(channels)

    @classmethod
    def from_config(cls, alerting_config, client=None):
        channels_cfg = (alerting_config or {}).get("channels") or {}
        channels = []

        for name, channel_cls in BUILTIN_CHANNELS:
            cfg = channels_cfg.get(name) or {}
            if not cfg.get("enabled"):
                continue
            if channel_cls is EmailChannel:
                channel = channel_cls(cfg)
            else:
                channel = channel_cls(cfg, client=client)
            if channel.is_enabled():
                channels.append(channel)
            else:
                logger.warning(f"Channel '{name}' is enabled but not fully configured, skipping")

        for plugin_cfg in channels_cfg.get("plugins") or []:
            if not plugin_cfg.get("enabled", True):
                continue
            plugin = PluginChannel(plugin_cfg, client=client)
            if plugin.is_enabled():
                channels.append(plugin)
            else:
                logger.warning(f"Plugin '{plugin_cfg.get('name')}' has no url, skipping")

        registry = cls(channels)
        logger.info(f"Channel registry: {', '.join(registry.names()) or 'no channels enabled'}")
        return registry

    def enabled(self):
        return self._channels

    def names(self):
        return [c.name for c in self._channels]

    def get(self, name):
        """Case-insensitive lookup; plugins match `plugin:<name>` or bare `<name>`."""
        wanted = (name or "").strip().lower()
        if not wanted:
            return None
        for channel in self._channels:
            if channel.name.lower() == wanted:
                return channel
        for channel in self._channels:
            if channel.name.lower().startswith(PLUGIN_PREFIX) and \
                    channel.name.lower()[len(PLUGIN_PREFIX):] == wanted:
                return channel
        return None

    def select(self, names=None):
        """Resolve requested names. Returns (channels, unknown_names).

        With no names, every enabled channel is selected.
        """
        if not names:
            return self._channels, []
        selected, unknown = [], []
        for name in names:
            channel = self.get(name)
            if channel is None:
                unknown.append(name)
            elif channel not in selected:
                selected.append(channel)
        return tuple(selected), unknown

    def __len__(self):
        return len(self._channels)

    def __iter__(self):
        return iter(self._channels)
