"""
Z-Wave Command Class Names
Maps command class IDs to the display names used in name-based topics.
"""

# Z-Wave Command Class Names
COMMAND_CLASS_NAMES = {
    0x00: "no_operation",
    0x20: "basic",
    0x21: "controller_replication",
    0x22: "application_status",
    0x25: "switch_binary",
    0x26: "switch_multilevel",
    0x27: "switch_all",
    0x28: "switch_toggle_binary",
    0x2B: "scene_activation",
    0x2C: "scene_actuator_conf",
    0x2D: "scene_controller_conf",
    0x30: "sensor_binary",
    0x31: "sensor_multilevel",
    0x32: "meter",
    0x33: "color",
    0x35: "meter_pulse",
    0x40: "thermostat_mode",
    0x42: "thermostat_operating_state",
    0x43: "thermostat_setpoint",
    0x44: "thermostat_fan_mode",
    0x45: "thermostat_fan_state",
    0x46: "climate_control_schedule",
    0x4C: "door_lock_logging",
    0x50: "basic_window_covering",
    0x59: "association_group_info",
    0x5A: "device_reset_locally",
    0x5B: "central_scene",
    0x5E: "zwave_plus_info",
    0x60: "multi_instance",
    0x62: "door_lock",
    0x63: "user_code",
    0x66: "barrier_operator",
    0x70: "configuration",
    0x71: "alarm",
    0x72: "manufacturer_specific",
    0x73: "powerlevel",
    0x75: "protection",
    0x76: "lock",
    0x77: "node_naming",
    0x80: "battery",
    0x81: "clock",
    0x84: "wake_up",
    0x85: "association",
    0x86: "version",
    0x87: "indicator",
    0x8E: "multi_instance_association",
    0x98: "security",
    0x9C: "sensor_alarm",
}


def command_class_name(command_class_id: int) -> str:
    """Display name for a command class, or cc_0xNN when unknown."""
    return COMMAND_CLASS_NAMES.get(command_class_id, f"cc_0x{command_class_id:02X}")
