from starblitz.game import run_game

if __name__ == "__main__":
    run_game()
