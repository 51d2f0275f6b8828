"""
Event system for the cardtable server.
"""

from cardtable.events.emitter import EngineEventType, EventEmitter, EventPriority

__all__ = ["EventEmitter", "EventPriority", "EngineEventType"]
