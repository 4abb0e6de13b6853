"""
Core module for the Slack dispatch runtime.

Contains the routing tables, capability protocols and plugin loading shared by
every transport.
"""

from .models import (
    ActionHandler,
    Bot,
    Channel,
    Controller,
    IntroController,
    Job,
    Message,
    RunnableBot,
    ScheduledJob,
    User,
)
from .dispatcher import Dispatcher
from .plugin_loader import Plugin, PluginLoader

__all__ = [
    'ActionHandler',
    'Bot',
    'Channel',
    'Controller',
    'IntroController',
    'Job',
    'Message',
    'RunnableBot',
    'ScheduledJob',
    'User',
    'Dispatcher',
    'Plugin',
    'PluginLoader',
]
