"""Административные команды движка аукционов"""
from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from config import settings
from exceptions import AuctionNotFoundError
from services.auction import describe_closure
from services.scheduler import AuctionScheduler
from services.storage import StorageGateway

router = Router()


def is_admin(user_id: int) -> bool:
    """Проверить, является ли пользователь админом"""
    return user_id in settings.admin_ids_list


@router.message(Command("close_auctions"))
async def cmd_close_auctions(message: Message, scheduler: AuctionScheduler):
    """Запустить проход закрытия аукционов вручную"""
    if not is_admin(message.from_user.id):
        await message.answer("У вас нет прав администратора")
        return

    report = await scheduler.run_once()
    if report.scan_failed:
        await message.answer("❌ Не удалось получить список аукционов, подробности в логах")
        return

    text = f"🔨 Проход закрытия выполнен\n\n{report.summary()}"
    if report.incomplete:
        text += f"\n\n⚠️ Незавершенные закрытия: {', '.join(map(str, sorted(report.incomplete)))}"
    if report.timed_out:
        text += f"\n\n⏱ Таймаут закрытия: {', '.join(map(str, sorted(report.timed_out)))}"
    await message.answer(text)


@router.message(Command("reconcile"))
async def cmd_reconcile(message: Message, scheduler: AuctionScheduler):
    """Запустить сверку незавершенных закрытий"""
    if not is_admin(message.from_user.id):
        await message.answer("У вас нет прав администратора")
        return

    report = await scheduler.reconcile_once()
    text = (
        f"🔁 Сверка выполнена\n\n"
        f"Найдено: {report.found}\n"
        f"Исправлено: {len(report.repaired)}\n"
        f"Ошибок: {len(report.failed)}"
    )
    if report.failed:
        text += f"\nТребуют внимания: {', '.join(map(str, report.failed))}"
    await message.answer(text)


@router.message(Command("auction_status"))
async def cmd_auction_status(message: Message, command: CommandObject, storage: StorageGateway):
    """Показать состояние закрытия аукциона"""
    if not is_admin(message.from_user.id):
        await message.answer("У вас нет прав администратора")
        return

    if not command.args or not command.args.strip().isdigit():
        await message.answer("Использование: /auction_status <id>")
        return

    try:
        auction = await storage.get_auction(int(command.args.strip()))
    except AuctionNotFoundError as e:
        await message.answer(e.message)
        return

    await message.answer(
        f"Аукцион {auction.id}: {auction.name}\n"
        f"Статус: {auction.status}\n"
        f"Состояние: {describe_closure(auction)}\n"
        f"Победитель: {auction.winner_id or '-'}\n"
        f"Финальная ставка: {auction.final_bid if auction.final_bid is not None else '-'}\n"
        f"Закрыт: {auction.ended_at or '-'}\n"
        f"Завершен полностью: {auction.settled_at or '-'}"
    )
