"""
Tests for the command line driver
"""

import math

from main import ArgsParser, main
from OpticsResult import XI_OPTION_LOWER_LIMIT, XI_OPTION_NO_CORRECT, XI_OPTION_TOP_LEVEL, XI_OPTION_UPPER_LIMIT


def test_defaults_map_to_settings():
    argsParser = ArgsParser()
    argsParser.parse([])
    settings = argsParser.args.toSettings()

    assert argsParser.args.algorithm == 'optics'
    assert settings.generatingDistance == 0.0
    assert settings.minPts == 5
    assert settings.xi == 0.03
    assert settings.options == 0
    assert settings.upperLimit == math.inf
    assert settings.lowerLimit == 0.0


def test_options_map_to_xi_flags():
    argsParser = ArgsParser()
    argsParser.parse(['-e', '0.7', '--numPts', '9', '--topLevel', '--noCorrect',
                      '--upperLimit', '2.5', '--lowerLimit', '0.1'])
    settings = argsParser.args.toSettings()

    assert settings.generatingDistance == 0.7
    assert settings.minPts == 9
    assert settings.options == (XI_OPTION_TOP_LEVEL | XI_OPTION_NO_CORRECT |
                                XI_OPTION_UPPER_LIMIT | XI_OPTION_LOWER_LIMIT)
    assert settings.upperLimit == 2.5
    assert settings.lowerLimit == 0.1


def test_main_runs_both_algorithms(caplog):
    caplog.set_level('INFO')
    assert main(['--samples', '200', '--seed', '3']) == 0
    assert main(['--algorithm', 'dbscan', '--samples', '200', '--seed', '3', '-e', '0.8']) == 0
    assert any('OPTICS on 200 points' in message for message in caplog.messages)
    assert any('DBSCAN on 200 points' in message for message in caplog.messages)
