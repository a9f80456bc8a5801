"""
Shell completion scripts.
"""

from typing import Dict


def get_bash_completion() -> str:
    """Bash completion script."""
    return """
# Bash completion for helm-optimize
_helm_optimize_completion() {
    local cur prev opts
    COMPREPLY=()
    cur="${COMP_WORDS[COMP_CWORD]}"
    prev="${COMP_WORDS[COMP_CWORD-1]}"

    if [[ ${COMP_CWORD} == 1 ]]; then
        opts="dedup cleanup info config completion --verbose --version --help"
        COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
        return 0
    fi

    if [[ "${COMP_WORDS[1]}" == "config" && ${COMP_CWORD} == 2 ]]; then
        opts="init show validate"
        COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
        return 0
    fi

    case "${COMP_WORDS[1]}" in
        dedup)
            case "${prev}" in
                --output|-o)
                    COMPREPLY=( $(compgen -d -- ${cur}) )
                    return 0
                    ;;
            esac
            if [[ ${cur} == -* ]]; then
                opts="--output --package --dry-run --show-deleted --verbose"
                COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
            else
                COMPREPLY=( $(compgen -d -- ${cur}) )
            fi
            return 0
            ;;
        cleanup)
            if [[ ${cur} == -* ]]; then
                opts="--dry-run --show-deleted"
                COMPREPLY=( $(compgen -W "${opts}" -- ${cur}) )
            else
                COMPREPLY=( $(compgen -d -- ${cur}) )
            fi
            return 0
            ;;
    esac
}

complete -F _helm_optimize_completion helm-optimize
"""


def get_zsh_completion() -> str:
    """Zsh completion script."""
    return """
#compdef helm-optimize

_helm_optimize() {
    local context state state_descr line
    typeset -A opt_args

    _arguments -C \\
        '(-v --verbose)'{-v,--verbose}'[Enable verbose output]' \\
        '1: :_helm_optimize_commands' \\
        '*:: :->args'

    case $state in
        args)
            case $words[1] in
                dedup)
                    _arguments \\
                        '(-o --output)'{-o,--output}'[Output directory for deduplicated chart]:directory:_directories' \\
                        '(-p --package)'{-p,--package}'[Package chart after deduplication]' \\
                        '--dry-run[Simulate deduplication without making changes]' \\
                        '--show-deleted[Show paths that would be deleted]' \\
                        '(-v --verbose)'{-v,--verbose}'[Enable verbose output]' \\
                        '1:chart directory:_directories'
                    ;;
                cleanup)
                    _arguments \\
                        '--dry-run[Simulate cleanup without making changes]' \\
                        '--show-deleted[Show paths that would be deleted]' \\
                        '1:chart directory:_directories'
                    ;;
                config)
                    _arguments '1: :(init show validate)'
                    ;;
                completion)
                    _arguments '1: :(bash zsh fish)'
                    ;;
            esac
            ;;
    esac
}

_helm_optimize_commands() {
    local commands
    commands=(
        'dedup:Deduplicate dependency charts'
        'cleanup:Remove unnecessary chart directories'
        'info:Show usage information'
        'config:Configuration management commands'
        'completion:Generate shell completion scripts'
    )
    _describe 'command' commands
}

_helm_optimize "$@"
"""


def get_fish_completion() -> str:
    """Fish completion script."""
    return """
# Fish completion for helm-optimize

complete -c helm-optimize -n '__fish_use_subcommand' -a 'dedup' -d 'Deduplicate dependency charts'
complete -c helm-optimize -n '__fish_use_subcommand' -a 'cleanup' -d 'Remove unnecessary chart directories'
complete -c helm-optimize -n '__fish_use_subcommand' -a 'info' -d 'Show information'
complete -c helm-optimize -n '__fish_use_subcommand' -a 'config' -d 'Configuration management'
complete -c helm-optimize -n '__fish_use_subcommand' -a 'completion' -d 'Generate completion scripts'
complete -c helm-optimize -n '__fish_use_subcommand' -s v -l verbose -d 'Verbose output'
complete -c helm-optimize -n '__fish_use_subcommand' -l version -d 'Show version'
complete -c helm-optimize -n '__fish_use_subcommand' -l help -d 'Show help'

complete -c helm-optimize -n '__fish_seen_subcommand_from dedup' -s o -l output -d 'Output directory' -x -a "(__fish_complete_directories)"
complete -c helm-optimize -n '__fish_seen_subcommand_from dedup' -s p -l package -d 'Package after deduplication'
complete -c helm-optimize -n '__fish_seen_subcommand_from dedup' -s v -l verbose -d 'Verbose output'
complete -c helm-optimize -n '__fish_seen_subcommand_from dedup cleanup' -l dry-run -d 'Simulate without changes'
complete -c helm-optimize -n '__fish_seen_subcommand_from dedup cleanup' -l show-deleted -d 'Show deleted paths'
complete -c helm-optimize -n '__fish_seen_subcommand_from dedup cleanup' -x -a "(__fish_complete_directories)"

complete -c helm-optimize -n '__fish_seen_subcommand_from config' -a 'init' -d 'Create sample config'
complete -c helm-optimize -n '__fish_seen_subcommand_from config' -a 'show' -d 'Show current config'
complete -c helm-optimize -n '__fish_seen_subcommand_from config' -a 'validate' -d 'Validate config file'

complete -c helm-optimize -n '__fish_seen_subcommand_from completion' -a 'bash zsh fish'
"""


def get_completion_scripts() -> Dict[str, str]:
    """Return all completion scripts."""
    return {
        "bash": get_bash_completion(),
        "zsh": get_zsh_completion(),
        "fish": get_fish_completion(),
    }
