#!/usr/bin/env python3
import platform
import socket

import psutil


def get_network_interfaces():
    """Names of the interfaces the kernel currently knows about"""
    try:
        return sorted(psutil.net_if_stats().keys())
    except (OSError, psutil.Error):
        return []


def interface_exists(name):
    return name in get_network_interfaces()


def get_system_info():
    uname = platform.uname()
    svmem = psutil.virtual_memory()

    return {
        "Hostname": socket.gethostname(),
        "OS": uname.system,
        "OS_Release": uname.release,
        "Machine_Architecture": uname.machine,
        "CPU_logical_Core": psutil.cpu_count(logical=True),
        "Total_RAM_GB": round(svmem.total / (1024 ** 3), 2),
        "Interfaces": get_network_interfaces(),
    }
