from __future__ import annotations
import os
import logging
import textwrap3
from datetime import datetime
from colorama import Fore, Style, init
from tabulate import tabulate

from salmwgs.__version__ import __version__

init(autoreset=True)

_LEVEL_MAP = {
    "Norm": logging.INFO,
    "Pass": logging.INFO,
    "Header": logging.INFO,
    "Warn": logging.WARNING,
    "Fail": logging.ERROR,
}

_COLOURS = {
    "Fail": Fore.RED,
    "Pass": Fore.GREEN,
    "Warn": Fore.YELLOW,
}

def stringwraper(text, width, s_type):
    lines = textwrap3.wrap(text, width=width, break_long_words=True) or [""]
    new_lines = []
    if s_type == "plain":
        new_lines = lines
    elif s_type == "command":
        for line in lines[:-1]:
            new_lines.append(line + "\\")
        new_lines.append(lines[-1])
    return new_lines

def time_print(message, message_type="", s_type='plain'):
    tstamp = datetime.now().strftime("[%Y-%m-%d %H:%M:%S]")
    messag_len = len(tstamp) + 3
    indent = " " * messag_len
    wrap_width = 140 - messag_len

    if message_type == 'Header':
        print('')
        print("\033[1m" + Fore.YELLOW + f'{tstamp} - {message}' + Style.RESET_ALL)
        print("\033[1m" + Fore.YELLOW + "="*len(f'{tstamp} - {message}') + '\n' + Style.RESET_ALL)
        return

    lines = stringwraper(message, width=wrap_width, s_type=s_type)
    colour = _COLOURS.get(message_type, "")
    reset = Style.RESET_ALL if colour else ""
    print(colour + f'{tstamp} - {lines[0]}' + reset)
    for line in lines[1:]:
        print(colour + indent + line + reset)

def simple_print(message, message_type="", s_type='plain'):
    if message_type == 'Header':
        print('\n')
        print("\033[1m" + Fore.YELLOW + message.lstrip() + Style.RESET_ALL)
        print("\033[1m" + Fore.YELLOW + "="*len(message.lstrip()) + '\n' + Style.RESET_ALL)
    elif message_type in _COLOURS:
        print(_COLOURS[message_type] + message.lstrip() + Style.RESET_ALL)
    else:
        print(message)

def announce(message, message_type="Norm", s_type='plain'):
    """Print to the console and send the same message to the run log."""
    time_print(message, message_type, s_type=s_type)
    logging.log(_LEVEL_MAP.get(message_type, logging.INFO), message)

def pipeheader(config, steps):
    header = f'''
    =======================================
    Salmonella WGS Pipeline v.{__version__}
    Sample: {config.sample_name}
    Date: {datetime.now().strftime("%Y-%m-%d")}
    =======================================
    '''
    header = header.split('\n')

    run_info = f'''
    Run Parameters:
    ===============
    \tForward reads: {config.fastq_1}
    \tReverse reads: {config.fastq_2}
    \tQuality Check: {config.qc}
    \tMLST Typing: {config.mlst}
    \tAMR Profiling: {config.amr}
    \tOutput Directory: {os.path.abspath(config.out_dir)}
    \tTemporary Directory: {config.tmp_dir}
    \tNumber of Threads: {config.threads}
    '''
    run_info = run_info.split('\n')

    rows = [[i, s.name, s.title, s.tool or "-", config.env_for(s.tool) or "-"] for i, s in enumerate(steps, 1)]
    plan = tabulate(rows, headers=["#", "Step", "Description", "Tool", "Env"], tablefmt="simple")
    return header, run_info, plan.split('\n')
